import logging
from typing import Optional
from rich.console import Console
from rich.logging import RichHandler
from rich.traceback import install as install_rich_traceback
from multiscim.config import settings


console = Console(stderr=True)

install_rich_traceback(show_locals=settings.debug, suppress=[])

# Third-party loggers and the level they run at outside production
LIBRARY_LOG_LEVELS = {
    "uvicorn": logging.INFO,
    "uvicorn.access": logging.INFO,
    "tortoise": logging.INFO,
    "tortoise.db_client": logging.WARNING,
    "httpx": logging.WARNING,
}


def setup_logging(
    level: Optional[str] = None,
    format: str = "%(message)s",
    datefmt: str = "[%X]",
) -> None:
    log_level = (level or settings.log_level).upper()

    logging.basicConfig(
        level=log_level,
        format=format,
        datefmt=datefmt,
        handlers=[
            RichHandler(
                console=console,
                rich_tracebacks=True,
                tracebacks_show_locals=settings.debug,
                show_path=settings.debug,
                markup=False,
            )
        ],
        force=True,
    )

    for name, library_level in LIBRARY_LOG_LEVELS.items():
        logging.getLogger(name).setLevel(library_level)

    if settings.is_production:
        logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
        logging.getLogger("uvicorn.error").setLevel(logging.ERROR)

    # Patch tracing is only useful when explicitly asked for
    logging.getLogger("multiscim.patch").setLevel(logging.DEBUG if log_level == "DEBUG" else logging.INFO)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


setup_logging()

logger = get_logger("multiscim")
