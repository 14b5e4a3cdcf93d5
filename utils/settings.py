from pathlib import Path
from typing import Any

import yaml


def mask_secret(value) -> str:
    """
    Masks a credential for log output, keeping the last four characters.
    Short values are masked completely.
    """
    if not value:
        return ""
    text = str(value)
    if len(text) <= 4:
        return "*****"
    return f"*****{text[-4:]}"


def get_settings_path(output_dir: str = None) -> Path:
    """Returns the path to the settings.yaml file."""
    if output_dir is None:
        from config import get_config

        output_dir = get_config()["OUTPUT_DIR"]
    return Path(output_dir) / "settings.yaml"


def load_settings_yaml(output_dir: str = None) -> dict[str, Any]:
    """Loads runtime settings overrides from YAML; a missing file means no overrides."""
    settings_path = get_settings_path(output_dir)
    if not settings_path.exists():
        return {}
    raw = settings_path.read_text(encoding="utf-8").strip()
    if not raw:
        return {}
    try:
        data = yaml.safe_load(raw)
        return data if isinstance(data, dict) else {}
    except yaml.YAMLError:
        return {}


def save_settings_yaml(settings_dict: dict[str, Any], output_dir: str = None) -> None:
    """Saves runtime settings as YAML (only given keys)."""
    settings_path = get_settings_path(output_dir)
    settings_path.parent.mkdir(parents=True, exist_ok=True)
    with settings_path.open("w", encoding="utf-8") as handle:
        yaml.safe_dump(settings_dict, handle, sort_keys=True)
