from gunicorn.app.base import BaseApplication
from gunicorn.util import import_app

from credgate.core.config import Settings

APP_URI = "credgate.main:app"


def gunicorn_options(config: Settings) -> dict:
    return {
        "bind": f"{config.backend_host}:{config.backend_port}",
        "workers": config.workers_count,
        "worker_class": "uvicorn.workers.UvicornWorker",
        # LoggingMiddleware already logs every request through loguru
        "accesslog": None,
        "graceful_timeout": 30,
    }


class GunicornApplication(BaseApplication):
    """Embedded gunicorn master running the API in uvicorn worker processes."""

    def __init__(self, app_uri: str = APP_URI, options: dict | None = None):
        self.app_uri = app_uri
        self.options = options or {}
        super().__init__()

    @classmethod
    def from_settings(cls, config: Settings) -> "GunicornApplication":
        return cls(APP_URI, gunicorn_options(config))

    def load_config(self):
        known = self.cfg.settings
        for key, value in self.options.items():
            if value is None or key not in known:
                continue
            self.cfg.set(key.lower(), value)

    def load(self):
        return import_app(self.app_uri)
