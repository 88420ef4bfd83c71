"""Structured logging utilities for ExtOrganizer."""
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

LOGGER_NAME = "ext_organizer"
_LOG_FORMAT = "%(message)s"
_MAX_BYTES = 10 * 1024 * 1024
_BACKUP_COUNT = 5
_LOG_DIR_NAME = ".ext_organizer"


def _sanitize(value: str) -> str:
    """Replace the home directory with ``~/`` to keep logs shareable."""

    home_str = str(Path.home())
    if value.startswith(home_str):
        remainder = value[len(home_str):]
        if not remainder:
            return "~"
        if remainder.startswith(("/", "\\")):
            return f"~/{remainder[1:]}"
    return value


def configure_logging(
    log_path: Path | None = None,
    *,
    level: int = logging.INFO,
    max_bytes: int = _MAX_BYTES,
    backup_count: int = _BACKUP_COUNT,
) -> logging.Logger:
    """Configure and return the package logger used throughout the application."""

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    if logger.handlers:
        if log_path:
            for handler in list(logger.handlers):
                logger.removeHandler(handler)
                handler.close()
        else:
            for handler in logger.handlers:
                handler.setLevel(level)
            return logger

    if log_path:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handler: logging.Handler = RotatingFileHandler(
            log_path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
    else:
        handler = logging.StreamHandler()

    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(_LOG_FORMAT))
    logger.addHandler(handler)
    return logger


def next_log_path(prefix: str, *, base_dir: Path | None = None) -> Path:
    """Return a fresh timestamped log file path under ``~/.ext_organizer/logs``."""

    directory = base_dir or Path.home() / _LOG_DIR_NAME / "logs"
    stamp = datetime.now().strftime("%Y%m%d-%H%M%S-%f")
    return directory / f"{prefix}-{stamp}.log"


def _prepare_payload(data: dict[str, Any]) -> dict[str, Any]:
    sanitized: dict[str, Any] = {}
    for key, value in data.items():
        if isinstance(value, str):
            sanitized[key] = _sanitize(value)
        elif isinstance(value, Path):
            sanitized[key] = _sanitize(str(value))
        elif isinstance(value, dict):
            sanitized[key] = _prepare_payload(value)
        elif isinstance(value, (list, tuple)):
            sanitized[key] = [
                _sanitize(item) if isinstance(item, str) else item for item in value
            ]
        else:
            sanitized[key] = value
    return sanitized


def log_event(
    logger: logging.Logger,
    *,
    level: int,
    action: str,
    message: str,
    task_id: str | None = None,
    bytes_processed: int | None = None,
    duration_ms: float | None = None,
    extra: dict[str, Any] | None = None,
) -> None:
    """Emit a structured JSON log entry."""

    if not logger.isEnabledFor(level):
        return

    payload: dict[str, Any] = {
        "ts": _utcnow_iso(),
        "level": logging.getLevelName(level),
        "action": action,
        "message": _sanitize(message),
    }
    if task_id is not None:
        payload["taskId"] = task_id
    if bytes_processed is not None:
        payload["bytes"] = bytes_processed
    if duration_ms is not None:
        payload["ms"] = duration_ms
    if extra:
        payload.update(_prepare_payload(extra))

    logger.log(level, json.dumps(payload, ensure_ascii=False))


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"


__all__ = ["LOGGER_NAME", "configure_logging", "log_event", "next_log_path"]
