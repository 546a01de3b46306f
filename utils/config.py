"""
Configuration — Environment-Backed Settings

THIS MODULE DEFINES NO COMMANDS.

Values come from the process environment, which `bot.py` seeds from a
`.env` file via python-dotenv before calling `Settings.load()`.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from safety.errors import ConfigurationMissing

logger = logging.getLogger(__name__)

DEFAULT_COMMAND_PREFIX = "!"
DEFAULT_SOUNDS_DIR = Path("sounds")
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_CLEANUP_DELAY = 30.0
DEFAULT_CONNECT_TIMEOUT = 30.0
DEFAULT_REPLY_TTL = 10.0


def _float_setting(values: Mapping[str, str], key: str, default: float) -> float:
    raw = values.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        parsed = float(raw)
    except ValueError:
        logger.warning("Ignoring non-numeric %s=%r, using %s", key, raw, default)
        return default
    if parsed < 0:
        logger.warning("Ignoring negative %s=%r, using %s", key, raw, default)
        return default
    return parsed


@dataclass(frozen=True)
class Settings:
    discord_token: str
    command_prefix: str = DEFAULT_COMMAND_PREFIX
    sounds_dir: Path = DEFAULT_SOUNDS_DIR
    log_level: str = DEFAULT_LOG_LEVEL
    cleanup_delay: float = DEFAULT_CLEANUP_DELAY
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT
    reply_ttl: float = DEFAULT_REPLY_TTL

    @staticmethod
    def load(environ: Optional[Mapping[str, str]] = None) -> "Settings":
        values = os.environ if environ is None else environ
        token = (values.get("DISCORD_TOKEN") or "").strip()
        if not token:
            raise ConfigurationMissing("DISCORD_TOKEN")
        prefix = values.get("COMMAND_PREFIX") or DEFAULT_COMMAND_PREFIX
        sounds_dir = values.get("KIDNAPBOT_SOUNDS_DIR") or str(DEFAULT_SOUNDS_DIR)
        log_level = (values.get("KIDNAPBOT_LOG_LEVEL") or DEFAULT_LOG_LEVEL).upper()
        return Settings(
            discord_token=token,
            command_prefix=prefix,
            sounds_dir=Path(sounds_dir),
            log_level=log_level,
            cleanup_delay=_float_setting(values, "KIDNAPBOT_CLEANUP_DELAY", DEFAULT_CLEANUP_DELAY),
            connect_timeout=_float_setting(values, "KIDNAPBOT_CONNECT_TIMEOUT", DEFAULT_CONNECT_TIMEOUT),
            reply_ttl=_float_setting(values, "KIDNAPBOT_REPLY_TTL", DEFAULT_REPLY_TTL),
        )
