import json
import logging
import os
import time
from logging.handlers import RotatingFileHandler

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class LocalTimeFormatter(logging.Formatter):
    converter = time.localtime


def _build_formatter() -> logging.Formatter:
    return LocalTimeFormatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)


def _rotating_handler(path: str, log_level: str, formatter: logging.Formatter) -> RotatingFileHandler:
    max_bytes = int(os.getenv("LOG_MAX_BYTES", "5000000"))
    backup_count = int(os.getenv("LOG_BACKUP_COUNT", "5"))
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    handler = RotatingFileHandler(path, maxBytes=max_bytes, backupCount=backup_count)
    handler.setLevel(log_level)
    handler.setFormatter(formatter)
    return handler


def setup_logging() -> None:
    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    log_file_path = os.getenv("LOG_FILE_PATH", "logs/backend.log")
    frontend_log_file_path = os.getenv("FRONTEND_LOG_FILE_PATH", "logs/frontend.log")

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    formatter = _build_formatter()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)

    root_logger.addHandler(console_handler)
    root_logger.addHandler(_rotating_handler(log_file_path, log_level, formatter))

    frontend_logger = logging.getLogger("frontend")
    frontend_logger.handlers.clear()
    frontend_logger.propagate = False
    frontend_logger.setLevel(log_level)
    frontend_logger.addHandler(console_handler)
    frontend_logger.addHandler(_rotating_handler(frontend_log_file_path, log_level, formatter))

    logging.getLogger("uvicorn.access").handlers.clear()


def setup_client_logging() -> None:
    """Console-only logging for the list application process."""
    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(_build_formatter())
    root_logger.addHandler(console_handler)

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("websockets").setLevel(logging.WARNING)


def format_frontend_message(message: str, context: dict | None = None) -> str:
    if not context:
        return message
    payload = {"message": message, "context": context}
    return json.dumps(payload, separators=(",", ":"))
