import os
import sys

import anyio
import uvicorn
from anyio.to_thread import current_default_thread_limiter
from loguru import logger

from credgate.core.config import settings
from credgate.web import APP_URI

IS_LINUX = sys.platform.startswith("linux")


async def watch_worker_threads(interval: float = 0.1):
    """Report every change in the number of borrowed anyio worker threads."""
    limiter = current_default_thread_limiter()
    last_seen = limiter.borrowed_tokens

    while True:
        await anyio.sleep(interval)
        if limiter.borrowed_tokens != last_seen:
            last_seen = limiter.borrowed_tokens
            logger.debug(f"Worker threads borrowed: {last_seen}")


def run_debug_server():
    """Single uvicorn server with asyncio debug mode and the thread watcher."""
    os.environ["PYTHONASYNCIODEBUG"] = "1"
    server = uvicorn.Server(
        uvicorn.Config(
            app=APP_URI,
            host=settings.backend_host,
            port=settings.backend_port,
            reload=settings.reload_uvicorn,
            loop="uvloop" if IS_LINUX else "auto",
        )
    )

    async def serve_and_watch():
        async with anyio.create_task_group() as tg:
            tg.start_soon(watch_worker_threads)
            await server.serve()
            tg.cancel_scope.cancel()

    anyio.run(serve_and_watch)


def main():
    if settings.debug:
        run_debug_server()
        return

    if not IS_LINUX:
        # gunicorn needs fork()
        uvicorn.run(
            app=APP_URI,
            host=settings.backend_host,
            port=settings.backend_port,
            workers=settings.workers_count,
        )
        return

    from credgate.web import GunicornApplication

    GunicornApplication.from_settings(settings).run()


if __name__ == "__main__":
    main()
