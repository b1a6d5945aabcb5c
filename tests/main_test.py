from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from credgate.main import app, lifespan


@pytest.fixture
def quiet_logging():
    with (
        patch("credgate.main.setup_logger"),
        patch("credgate.main.configure_uvicorn_logging"),
        patch("credgate.main.shutdown_logger"),
    ):
        yield


@pytest.fixture
def database():
    with (
        patch("credgate.main.engine") as mock_engine,
        patch("credgate.main.create_tables", new_callable=AsyncMock) as mock_create_tables,
    ):
        mock_engine.dispose = AsyncMock()
        yield mock_engine, mock_create_tables


@pytest.mark.anyio
@pytest.mark.usefixtures("quiet_logging")
class TestLifespan:
    async def test_creates_tables_and_disposes_engine(self, database):
        engine, create_tables = database

        with patch("credgate.main.settings") as mock_settings:
            mock_settings.db_create_tables = True

            async with lifespan(app):
                create_tables.assert_awaited_once()

        engine.dispose.assert_awaited_once()

    async def test_skips_table_creation(self, database):
        _, create_tables = database

        with patch("credgate.main.settings") as mock_settings:
            mock_settings.db_create_tables = False

            async with lifespan(app):
                pass

        create_tables.assert_not_awaited()

    async def test_unhealthy_rate_limit_store_aborts_startup(self, database):
        store = MagicMock()
        store.health_check = AsyncMock(return_value=False)

        with patch("credgate.main.rate_limiter") as mock_limiter:
            mock_limiter.store = store

            with pytest.raises(RuntimeError, match="Rate limit store is not healthy"):
                async with lifespan(app):
                    pass

    async def test_closes_rate_limit_store(self, database):
        store = MagicMock()
        store.health_check = AsyncMock(return_value=True)
        store.close = AsyncMock()

        with (
            patch("credgate.main.rate_limiter") as mock_limiter,
            patch("credgate.main.settings") as mock_settings,
        ):
            mock_limiter.store = store
            mock_settings.db_create_tables = False

            async with lifespan(app):
                store.close.assert_not_awaited()

        store.close.assert_awaited_once()


class TestApp:
    def test_routes_registered(self):
        paths = {route.path for route in app.routes}

        assert {
            "/api/v1/health",
            "/api/v1/auth/signup",
            "/api/v1/auth/login",
            "/api/v1/auth/refresh-token",
            "/api/v1/auth/logout",
            "/api/v1/auth/me",
        } <= paths
