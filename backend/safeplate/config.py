"""
Feature flags, paths, and centralized configuration.
Values are read from the environment; app.py loads backend/.env first.
"""
import os
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

# backend/safeplate/config.py -> parent=safeplate, parent.parent=backend
_PACKAGE_DIR = Path(__file__).resolve().parent
_BACKEND_DIR = _PACKAGE_DIR.parent

DEFAULT_WEEKLY_MINIMUM = 7


def _env_flag(name: str, default: str) -> bool:
    return os.environ.get(name, default).strip().lower() in ("1", "true", "yes", "on")


# --- Data paths ---
def get_default_rules_path() -> Path:
    return _PACKAGE_DIR / "data" / "dietary_rules.json"


def get_rules_path() -> Path:
    override = os.environ.get("SAFEPLATE_RULES_PATH", "").strip()
    if override:
        return Path(override)
    return get_default_rules_path()


# --- Filtering behaviour (lazy read from env) ---
def get_mild_override_enabled() -> bool:
    """Whether a mild/bland tag keeps an item that a bland restriction would drop."""
    return _env_flag("SAFEPLATE_MILD_OVERRIDE", "true")


def get_weekly_minimum() -> int:
    raw = os.environ.get("SAFEPLATE_WEEKLY_MINIMUM", "").strip()
    if not raw:
        return DEFAULT_WEEKLY_MINIMUM
    try:
        value = int(raw)
    except ValueError:
        logger.warning("SAFEPLATE_WEEKLY_MINIMUM=%r is not an integer; using %d", raw, DEFAULT_WEEKLY_MINIMUM)
        return DEFAULT_WEEKLY_MINIMUM
    return max(0, value)


def get_log_level() -> str:
    return os.environ.get("SAFEPLATE_LOG_LEVEL", "INFO").strip().upper() or "INFO"


# --- Startup logging ---
def log_config() -> None:
    rules_path = get_rules_path()
    logger.info(
        "CONFIG: rules_path=%s rules_exists=%s mild_override=%s weekly_minimum=%d log_level=%s",
        rules_path, rules_path.exists(),
        get_mild_override_enabled(), get_weekly_minimum(), get_log_level(),
    )
