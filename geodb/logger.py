import os
from logging import Logger, config, getLevelName, getLogger

LOGGER_NAME = "geodb"
LOG_LEVEL = getLevelName(os.getenv("GEODB_LOG_LEVEL", os.getenv("LOG_LEVEL", "INFO")).upper())


def build_log_config(level: str | int = LOG_LEVEL) -> dict:
    """Build the dictConfig for the service and uvicorn loggers.

    Child loggers (``geodb.resolver``, ``geodb.cache`` ...) propagate to the
    ``geodb`` logger and share its handler.
    """
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "access": {
                "()": "uvicorn.logging.AccessFormatter",
                "fmt": '%(levelprefix)s %(asctime)s - %(client_addr)s - "%(request_line)s" %(status_code)s',
                "datefmt": "%Y-%m-%d %H:%M:%S",
                "use_colors": True,
            },
            "default": {
                "()": "uvicorn.logging.DefaultFormatter",
                "fmt": "%(levelprefix)s %(asctime)s - %(name)s - %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
                "use_colors": True,
            },
        },
        "handlers": {
            "access": {"class": "logging.StreamHandler", "formatter": "access", "stream": "ext://sys.stdout"},
            "default": {
                "formatter": "default",
                "class": "logging.StreamHandler",
                "stream": "ext://sys.stderr",
            },
        },
        "loggers": {
            LOGGER_NAME: {"handlers": ["default"], "level": level, "propagate": False},
            "uvicorn": {"handlers": ["default"], "level": level, "propagate": True},
            "uvicorn.access": {"handlers": ["access"], "level": level, "propagate": False},
            "uvicorn.error": {"level": level, "propagate": False},
            "httpx": {"handlers": ["default"], "level": "WARNING", "propagate": False},
        },
    }


def get_logger(name: str | None = None) -> Logger:
    """Return the service logger, or one of its children when `name` is given."""
    base = getLogger(LOGGER_NAME)
    return base.getChild(name) if name else base


config.dictConfig(build_log_config())

logger = get_logger()
