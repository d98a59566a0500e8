import logging
import json
from typing import Any
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path

from pydantic import BaseModel

from journal_digest.config.settings import settings

_BASE_LOGGER_NAME = "journal_digest"
_CONFIGURED = False
_DEBUG_FILE_HANDLER_MARK = "_journal_digest_debug_file"


def _resolve_log_level(level_name: str, default: int) -> tuple[int, bool]:
    level = getattr(logging, (level_name or "").strip().upper(), None)
    if isinstance(level, int):
        return level, True
    return default, False


def _ensure_debug_file_handler(base_logger: logging.Logger) -> None:
    if not settings.LOG_FILE_ENABLED:
        return
    for handler in base_logger.handlers:
        if getattr(handler, _DEBUG_FILE_HANDLER_MARK, False):
            return

    backup_count = settings.LOG_FILE_BACKUP_COUNT
    if backup_count < 0:
        base_logger.warning(
            "[logger] Invalid LOG_FILE_BACKUP_COUNT '%s', fallback to 7",
            backup_count,
        )
        backup_count = 7

    file_level, valid = _resolve_log_level(settings.LOG_FILE_LEVEL, logging.DEBUG)
    if not valid:
        base_logger.warning(
            "[logger] Invalid LOG_FILE_LEVEL '%s', fallback to DEBUG",
            settings.LOG_FILE_LEVEL,
        )

    try:
        log_dir = Path(settings.LOG_DIR)
        log_dir.mkdir(parents=True, exist_ok=True)

        file_handler = TimedRotatingFileHandler(
            filename=str(log_dir / settings.LOG_FILE_NAME),
            when=settings.LOG_FILE_WHEN,
            interval=settings.LOG_FILE_INTERVAL,
            backupCount=backup_count,
            encoding=settings.LOG_FILE_ENCODING,
        )
        file_handler.setLevel(file_level)
        file_handler.setFormatter(logging.Formatter(settings.LOG_FORMAT))
        setattr(file_handler, _DEBUG_FILE_HANDLER_MARK, True)
        base_logger.addHandler(file_handler)
    except OSError as exc:
        base_logger.warning(
            "[logger] Failed to configure debug file logging at '%s': %s",
            settings.LOG_DIR,
            exc,
        )


def configure_logging() -> None:
    global _CONFIGURED
    if _CONFIGURED:
        return

    base_logger = logging.getLogger(_BASE_LOGGER_NAME)
    log_level, valid = _resolve_log_level(settings.LOG_LEVEL, logging.INFO)

    if not base_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(settings.LOG_FORMAT))
        base_logger.addHandler(handler)
        base_logger.propagate = False
    base_logger.setLevel(log_level)

    if not valid:
        base_logger.warning(
            "[logger] Invalid LOG_LEVEL '%s', fallback to INFO",
            settings.LOG_LEVEL,
        )

    _ensure_debug_file_handler(base_logger)

    _CONFIGURED = True


def get_logger(name: str | None = None) -> logging.Logger:
    configure_logging()
    base_logger = logging.getLogger(_BASE_LOGGER_NAME)
    if not name:
        return base_logger
    if name.startswith(f"{_BASE_LOGGER_NAME}."):
        name = name[len(_BASE_LOGGER_NAME) + 1:]
    return base_logger.getChild(name)


def _stringify_log_content(content: Any) -> str:
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    if isinstance(content, BaseModel):
        try:
            return json.dumps(content.model_dump(mode="json"), ensure_ascii=False)
        except (TypeError, ValueError):
            return str(content)
    if isinstance(content, dict):
        try:
            return json.dumps(content, ensure_ascii=False, default=str)
        except (TypeError, ValueError):
            return str(content)
    return str(content)


def log_stage(logger: logging.Logger, stage: str, content: Any) -> None:
    """Log a pipeline stage outcome. Callers pass counts and flags, never entry text."""
    text = _stringify_log_content(content)

    if not text:
        logger.info("[%s] output: [EMPTY]", stage)
        return

    limit = settings.STAGE_LOG_TRUNCATE
    if len(text) > limit:
        text = f"{text[:limit]} ...[truncated {len(text) - limit} chars]"

    logger.info("[%s] output: %s", stage, text)
