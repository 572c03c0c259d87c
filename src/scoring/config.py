"""Configuration for the scoring service.

Settings come from ``FRAUDSCORE_*`` environment variables. A dotenv-style file
named by ``FRAUDSCORE_CONFIG_PATH`` can fill in variables that are not set.
Invalid values are logged and replaced by their defaults.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

TRUE_VALUES = {"1", "true", "yes", "y", "on"}
FALSE_VALUES = {"0", "false", "no", "n", "off"}


@dataclass(frozen=True)
class ScoringConfig:
    database_url: str
    history_limit: int
    frequency_window_hours: int
    dashboard_window_days: int
    report_window_days: int
    fill_missing_days: bool
    log_level: str
    config_path: str | None


def load_config() -> ScoringConfig:
    config_path = os.getenv("FRAUDSCORE_CONFIG_PATH")
    if config_path:
        applied = _load_env_file(config_path)
        if applied:
            logger.debug(f"Loaded {sorted(applied)} from {config_path}")

    return ScoringConfig(
        database_url=os.getenv("FRAUDSCORE_DATABASE_URL", "sqlite:///./fraudscore.db"),
        history_limit=_get_int("FRAUDSCORE_HISTORY_LIMIT", 10),
        frequency_window_hours=_get_int("FRAUDSCORE_FREQUENCY_WINDOW_HOURS", 24),
        dashboard_window_days=_get_int("FRAUDSCORE_DASHBOARD_WINDOW_DAYS", 7),
        report_window_days=_get_int("FRAUDSCORE_REPORT_WINDOW_DAYS", 30),
        fill_missing_days=_get_bool("FRAUDSCORE_FILL_MISSING_DAYS", False),
        log_level=os.getenv("FRAUDSCORE_LOG_LEVEL", "INFO").upper(),
        config_path=config_path,
    )


def _get_int(key: str, default: int, minimum: int = 1) -> int:
    """Read a positive count or window size, falling back to ``default``."""
    raw = os.getenv(key, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning(f"{key}={raw!r} is not an integer, using {default}")
        return default
    if value < minimum:
        logger.warning(f"{key}={value} is below {minimum}, using {default}")
        return default
    return value


def _get_bool(key: str, default: bool) -> bool:
    raw = os.getenv(key, "").strip().lower()
    if not raw:
        return default
    if raw in TRUE_VALUES:
        return True
    if raw in FALSE_VALUES:
        return False
    logger.warning(f"{key}={raw!r} is not a boolean, using {default}")
    return default


def _load_env_file(path: str) -> dict[str, str]:
    """Apply ``KEY=value`` lines from a file to unset environment variables.

    Blank lines, comments and lines without ``=`` are ignored, and an
    ``export`` prefix is allowed. Variables already in the environment win.

    Returns:
        The variables that were applied.
    """
    env_path = Path(path)
    if not env_path.is_file():
        logger.warning(f"Config file {path} not found, using environment only")
        return {}

    applied: dict[str, str] = {}
    for line in env_path.read_text().splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip().removeprefix("export ").strip()
        if not key or key in os.environ:
            continue
        value = value.strip().strip('"').strip("'")
        os.environ[key] = value
        applied[key] = value
    return applied
