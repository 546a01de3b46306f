"""
KidnapBot Logging — Action and Audit Logging

THIS MODULE DEFINES NO COMMANDS.

Responsibilities:
- Log kidnaps, moves, and room cleanup
- Log punishments, releases, and confinement re-enforcement
- Log platform-API errors and unexpected behavior

Used for debugging, audits, and accountability.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

DEFAULT_LOGGER_NAME = "kidnapbot.audit"

def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()

def _json_default(value: Any) -> str:
    try:
        return str(value)
    except Exception:
        return "<unserializable>"

def _merge_context(base: Optional[Mapping[str, Any]], extra: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    merged: Dict[str, Any] = {}
    if base:
        merged.update(base)
    if extra:
        merged.update(extra)
    return merged

@dataclass
class LogContext:
    """Reusable structured context for audit logs."""
    actor_id: Optional[int] = None
    target_id: Optional[int] = None
    target_name: Optional[str] = None
    guild_id: Optional[int] = None
    room_id: Optional[int] = None
    command: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> Dict[str, Any]:
        base = {
            "actor_id": self.actor_id,
            "target_id": self.target_id,
            "target_name": self.target_name,
            "guild_id": self.guild_id,
            "room_id": self.room_id,
            "command": self.command,
        }
        base = {key: value for key, value in base.items() if value is not None}
        return _merge_context(base, self.extra)

class StructuredFormatter(logging.Formatter):
    """Format log records as JSON strings with structured fields."""
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": _utc_now_iso(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if hasattr(record, "event"):
            payload["event"] = record.event
        if hasattr(record, "data"):
            payload["data"] = record.data
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=_json_default)

def get_audit_logger(name: str = DEFAULT_LOGGER_NAME) -> logging.Logger:
    """Get or create the structured audit logger."""
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    logger.setLevel(logging.INFO)

    handler = logging.StreamHandler()
    handler.setFormatter(StructuredFormatter())

    logger.addHandler(handler)
    logger.propagate = False
    return logger

def _resolve_context(context: Optional[LogContext | Mapping[str, Any]]) -> Mapping[str, Any]:
    if isinstance(context, LogContext):
        return context.as_dict()
    return context or {}

def _log_event(
    logger: logging.Logger,
    level: int,
    event: str,
    message: str,
    context: Optional[Mapping[str, Any]] = None,
    extra: Optional[Mapping[str, Any]] = None,
    exc_info: Optional[BaseException] = None,
) -> None:
    payload = _merge_context(context, extra)
    logger.log(level, message, extra={"event": event, "data": payload}, exc_info=exc_info)

def log_action(
    message: str,
    *,
    context: Optional[LogContext | Mapping[str, Any]] = None,
    action: Optional[str] = None,
    logger: Optional[logging.Logger] = None,
    **extra: Any,
) -> None:
    """Log a kidnap, move, or cleanup step."""
    resolved_logger = logger or get_audit_logger()
    if action:
        extra["action"] = action
    _log_event(resolved_logger, logging.INFO, "action", message, _resolve_context(context), extra or None)

def log_punishment(
    message: str,
    *,
    context: Optional[LogContext | Mapping[str, Any]] = None,
    punishment: Optional[str] = None,
    logger: Optional[logging.Logger] = None,
    **extra: Any,
) -> None:
    """Log a punishment, a release, or a confinement re-enforcement."""
    resolved_logger = logger or get_audit_logger()
    if punishment:
        extra["punishment"] = punishment
    _log_event(resolved_logger, logging.WARNING, "punishment", message, _resolve_context(context), extra or None)

def log_error(
    message: str,
    *,
    context: Optional[LogContext | Mapping[str, Any]] = None,
    error: Optional[BaseException] = None,
    logger: Optional[logging.Logger] = None,
    **extra: Any,
) -> None:
    """Log an error or unexpected behavior."""
    resolved_logger = logger or get_audit_logger()
    if error:
        extra["error"] = repr(error)
    _log_event(
        resolved_logger,
        logging.ERROR,
        "error",
        message,
        _resolve_context(context),
        extra or None,
        exc_info=error,
    )
