import logging
import os
import sys
import uuid
from contextvars import ContextVar
from typing import TYPE_CHECKING

from loguru import logger

from credgate.core.config import Environment, settings

if TYPE_CHECKING:
    from loguru import Record

# Set by LoggingMiddleware for the duration of one request
request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)

LOG_FILE_NAME = "credgate.log"

_CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<magenta>PID:{extra[process_id]}</magenta> | "
    "<yellow>ReqID:{extra[request_id]}</yellow> | "
    "<cyan>{name}:{function}:{line}</cyan> | "
    "<level>{message}</level>"
)
_FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss!UTC} | {level: <8} | PID:{extra[process_id]} | "
    "ReqID:{extra[request_id]} | {name}:{function}:{line} | {message}"
)


def correlation_filter(record: "Record") -> bool:
    """
    Stamp every record with the current request id and the worker's pid.

    Never filters anything out.
    """
    record["extra"]["request_id"] = request_id_var.get() or "-"
    record["extra"]["process_id"] = os.getpid()
    return True


def new_request_id() -> str:
    return uuid.uuid4().hex[:8]


class InterceptHandler(logging.Handler):
    """
    Standard logging handler that re-emits records through loguru.

    Installed on uvicorn's and gunicorn's loggers so all output shares one format.
    """

    def emit(self, record: logging.LogRecord):
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Skip logging's own frames so loguru reports the real caller
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logger():
    """
    Replace loguru's default sink with the service's console sink and, when
    enabled, a rotating file sink shared by every worker process.

    Call once per process from the application lifespan.
    """
    logger.remove()

    level = logging.getLevelName(settings.log_level)
    if not isinstance(level, str) or level.startswith("Level "):
        level = "INFO"

    console_level = "DEBUG" if settings.current_environment == Environment.DEV else level

    logger.add(
        sys.stdout,
        format=_CONSOLE_FORMAT,
        level=console_level,
        colorize=True,
        enqueue=True,
        filter=correlation_filter,
    )

    if settings.log_to_file:
        settings.log_dir.mkdir(parents=True, exist_ok=True)
        logger.add(
            settings.log_dir / LOG_FILE_NAME,
            format=_FILE_FORMAT,
            level=level,
            rotation="10 MB",
            retention="3 months",
            compression="gz",
            enqueue=True,
            filter=correlation_filter,
            backtrace=True,
            # Locals can hold passwords and credentials
            diagnose=False,
        )

    logger.info(f"Logger ready ({settings.current_environment.value}, level {level})")


def configure_uvicorn_logging():
    """
    Route the standard logging tree, uvicorn's loggers included, into loguru.

    Must run after setup_logger().
    """
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)

    for name in list(logging.root.manager.loggerDict):
        if name.startswith(("uvicorn", "gunicorn")):
            std_logger = logging.getLogger(name)
            std_logger.handlers = [InterceptHandler()]
            std_logger.propagate = False

    logger.debug("Standard logging now routed through loguru")


def shutdown_logger():
    """Drain the enqueued records before the process exits."""
    logger.info("Flushing logs before shutdown")
    logger.complete()
