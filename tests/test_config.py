"""
Tests for configuration loading and settings.yaml overrides.
"""

import pytest

import config
from utils.settings import load_settings_yaml, mask_secret, save_settings_yaml


@pytest.fixture(autouse=True)
def fresh_config(monkeypatch, tmp_path):
    monkeypatch.setenv("OUTPUT_DIR", str(tmp_path))
    config.reset_config()
    yield
    config.reset_config()


def test_defaults(monkeypatch):
    for key in ("CAPTURE_FREQUENCY", "FRAME_QUEUE_POLICY", "ARCHIVE_MAX_WORKERS", "DATE_ORDER"):
        monkeypatch.delenv(key, raising=False)

    cfg = config.get_config()

    assert cfg["CAPTURE_FREQUENCY"] == 60
    assert cfg["FRAME_QUEUE_POLICY"] == "drop_oldest"
    assert cfg["ARCHIVE_MAX_WORKERS"] is None
    assert cfg["DATE_ORDER"] == "MDY"


def test_environment_values(monkeypatch):
    monkeypatch.setenv("TELEGRAM_GROUP_ID", "-100555")
    monkeypatch.setenv("ARCHIVE_MAX_WORKERS", "4")
    monkeypatch.setenv("ARCHIVE_FAILURE_POLICY", "SKIP")
    monkeypatch.setenv("CAPTURE_FREQUENCY", "0")

    cfg = config.get_config()

    assert cfg["TELEGRAM_GROUP_ID"] == -100555
    assert cfg["ARCHIVE_MAX_WORKERS"] == 4
    assert cfg["ARCHIVE_FAILURE_POLICY"] == "skip"
    assert cfg["CAPTURE_FREQUENCY"] == 1


def test_unknown_policy_falls_back(monkeypatch):
    monkeypatch.setenv("FRAME_QUEUE_POLICY", "unbounded")
    assert config.get_config()["FRAME_QUEUE_POLICY"] == "drop_oldest"


def test_settings_yaml_overrides_environment(monkeypatch, tmp_path):
    monkeypatch.setenv("DATE_TIMEZONE", "UTC")
    save_settings_yaml({"DATE_TIMEZONE": "Europe/Berlin", "NOT_A_KEY": 1}, str(tmp_path))

    cfg = config.get_config()

    assert cfg["DATE_TIMEZONE"] == "Europe/Berlin"
    assert "NOT_A_KEY" not in cfg


def test_get_config_returns_copy():
    cfg = config.get_config()
    cfg["OUTPUT_DIR"] = "/elsewhere"
    assert config.get_config()["OUTPUT_DIR"] != "/elsewhere"


def test_malformed_settings_yaml_is_ignored(tmp_path):
    (tmp_path / "settings.yaml").write_text("[not: a mapping", encoding="utf-8")
    assert load_settings_yaml(str(tmp_path)) == {}


@pytest.mark.parametrize(
    "value,masked",
    [("", ""), (None, ""), ("abc", "*****"), ("123456:ABCDEFG", "*****DEFG")],
)
def test_mask_secret(value, masked):
    assert mask_secret(value) == masked
