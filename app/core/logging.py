import logging
import os
from logging.handlers import RotatingFileHandler

from app.core.config import Settings

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(name)s: %(message)s"

# Marks handlers installed here so reconfiguring replaces them.
_HANDLER_TAG = "_catalog_api_handler"


def _tag(handler: logging.Handler) -> logging.Handler:
    setattr(handler, _HANDLER_TAG, True)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    return handler


def configure_logging(settings: Settings) -> None:
    """
    Configure the root logger.

    Console output always; when log_dir is set, app.log (INFO+) and
    error.log (ERROR+) rotate by size under that directory.
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))

    for handler in list(root.handlers):
        if getattr(handler, _HANDLER_TAG, False):
            root.removeHandler(handler)
            handler.close()

    root.addHandler(_tag(logging.StreamHandler()))

    if settings.log_dir:
        os.makedirs(settings.log_dir, exist_ok=True)

        info_handler = RotatingFileHandler(
            os.path.join(settings.log_dir, "app.log"),
            maxBytes=settings.log_max_bytes,
            backupCount=settings.log_backup_count,
            encoding="utf-8",
        )
        info_handler.setLevel(logging.INFO)
        root.addHandler(_tag(info_handler))

        error_handler = RotatingFileHandler(
            os.path.join(settings.log_dir, "error.log"),
            maxBytes=settings.log_max_bytes,
            backupCount=settings.log_error_backup_count,
            encoding="utf-8",
        )
        error_handler.setLevel(logging.ERROR)
        root.addHandler(_tag(error_handler))
