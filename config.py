# config.py
import os
import threading

from dotenv import load_dotenv

# Load environment variables from .env file.
load_dotenv()

_config_cache: dict | None = None
_config_lock = threading.Lock()


def _parse_group_id(raw: str):
    """Telegram group ids are negative integers; keep non-numeric values (e.g. @channel) as-is."""
    raw = raw.strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        return raw


def load_config():
    """
    Loads configuration from environment variables and returns a dictionary.

    Values from OUTPUT_DIR/settings.yaml override the environment.
    """
    frame_queue_policy = os.getenv("FRAME_QUEUE_POLICY", "drop_oldest").strip().lower()
    if frame_queue_policy not in ("drop_oldest", "block"):
        frame_queue_policy = "drop_oldest"

    failure_policy = os.getenv("ARCHIVE_FAILURE_POLICY", "abort").strip().lower()
    if failure_policy not in ("abort", "skip"):
        failure_policy = "abort"

    max_workers_raw = os.getenv("ARCHIVE_MAX_WORKERS", "").strip()

    config = {
        # General Settings
        "DEBUG_MODE": os.getenv("DEBUG_MODE", "False").lower() == "true",
        "OUTPUT_DIR": os.getenv("OUTPUT_DIR", "/output"),

        # Capture Settings
        "CAPTURE_FREQUENCY": max(1, int(os.getenv("CAPTURE_FREQUENCY", 60))),
        "CAPTURE_FPS": float(os.getenv("CAPTURE_FPS", 1)),
        "FRAME_WIDTH": int(os.getenv("FRAME_WIDTH", 1280)),
        "FRAME_HEIGHT": int(os.getenv("FRAME_HEIGHT", 720)),
        "FRAME_QUEUE_MAXSIZE": max(1, int(os.getenv("FRAME_QUEUE_MAXSIZE", 8))),
        "FRAME_QUEUE_POLICY": frame_queue_policy,

        # Query Settings
        "DATE_ORDER": os.getenv("DATE_ORDER", "MDY"),
        "DATE_TIMEZONE": os.getenv("DATE_TIMEZONE", "UTC"),
        "INLINE_RESULTS_LIMIT": int(os.getenv("INLINE_RESULTS_LIMIT", 10)),

        # Archive Settings
        "ARCHIVE_MAX_WORKERS": int(max_workers_raw) if max_workers_raw else None,
        "ARCHIVE_FAILURE_POLICY": failure_policy,

        # Telegram Settings
        "TELEGRAM_BOT_TOKEN": os.getenv("TELEGRAM_BOT_TOKEN", "").strip(),
        "TELEGRAM_GROUP_ID": _parse_group_id(os.getenv("TELEGRAM_GROUP_ID", "")),

        # Camera Directory Settings
        "EZVIZ_ACCOUNT": os.getenv("EZVIZ_ACCOUNT", ""),
        "EZVIZ_PASSWORD": os.getenv("EZVIZ_PASSWORD", ""),
        "EZVIZ_VERIFICATION_CODE": os.getenv("EZVIZ_VERIFICATION_CODE", ""),
    }

    from utils.settings import load_settings_yaml

    overrides = load_settings_yaml(config["OUTPUT_DIR"])
    for key, value in overrides.items():
        if key in config:
            config[key] = value
    return config


def get_config() -> dict:
    """Returns the process-wide configuration, loading it on first use."""
    global _config_cache
    with _config_lock:
        if _config_cache is None:
            _config_cache = load_config()
        return dict(_config_cache)


def reset_config() -> None:
    """Drops the cached configuration so the next get_config() reloads it."""
    global _config_cache
    with _config_lock:
        _config_cache = None


if __name__ == "__main__":
    # For testing purposes, print the configuration
    config = load_config()
    from pprint import pprint

    pprint(config)
