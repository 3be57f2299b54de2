import json
from pathlib import Path

from nginx_harness.local.config import MergedSettings


def test_defaults_without_overrides(tmp_path):
    settings = MergedSettings(tmp_path / "overrides.json")

    assert settings.NGINX_WAIT_TIMEOUT == 30
    assert "NGINX_WAIT_TIMEOUT" in settings.MODIFIABLE_SETTINGS


def test_modifiable_overrides_are_applied_and_coerced(tmp_path):
    path = tmp_path / "overrides.json"
    path.write_text(json.dumps({"NGINX_WAIT_TIMEOUT": "5", "RETRY_MAX_ATTEMPTS": 3, "LOG_CONFIG_CONTENT": "yes"}))

    settings = MergedSettings(path)

    assert settings.NGINX_WAIT_TIMEOUT == 5.0
    assert settings.RETRY_MAX_ATTEMPTS == 3
    assert settings.LOG_CONFIG_CONTENT is True


def test_non_modifiable_and_unknown_overrides_are_ignored(tmp_path, caplog):
    path = tmp_path / "overrides.json"
    path.write_text(json.dumps({"NGINX_EXECUTABLE_PATH": "/evil", "NOT_A_SETTING": 1}))

    settings = MergedSettings(path)

    assert settings.NGINX_EXECUTABLE_PATH != Path("/evil")
    assert not hasattr(settings, "NOT_A_SETTING")
    assert "non-modifiable" in caplog.text


def test_malformed_overrides_are_ignored(tmp_path, caplog):
    path = tmp_path / "overrides.json"
    path.write_text("{not json")

    settings = MergedSettings(path)

    assert settings.RETRY_MAX_ATTEMPTS > 0
    assert "Failed to load or parse overrides file" in caplog.text


def test_bad_override_value_is_skipped(tmp_path):
    path = tmp_path / "overrides.json"
    path.write_text(json.dumps({"RETRY_MAX_ATTEMPTS": "many"}))

    settings = MergedSettings(path)

    assert isinstance(settings.RETRY_MAX_ATTEMPTS, int)

