"""Tests for settings loading and validation."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from timecardpilot.__main__ import build_settings, parse_args
from timecardpilot.settings import AppSettings


def test_load_from_yaml(tmp_settings_yaml):
    settings = AppSettings.from_yaml(tmp_settings_yaml)
    assert settings.login_id == "12345"
    assert settings.headless is True
    assert settings.clock_in_time == "0930"
    assert settings.clock_out_time == "1830"
    assert settings.application_reason == "forgot to stamp"
    assert settings.dry_run is True
    assert settings.max_rows == 5
    assert settings.retry_max_attempts == 4


def test_env_var_override(tmp_settings_yaml, monkeypatch):
    monkeypatch.setenv("TIMECARDPILOT_LOGIN_ID", "99999")
    settings = AppSettings.from_yaml(tmp_settings_yaml)
    assert settings.login_id == "99999"


def test_cli_overrides_beat_env_and_yaml(tmp_settings_yaml, monkeypatch):
    monkeypatch.setenv("TIMECARDPILOT_CLOCK_IN_TIME", "0800")
    args = parse_args(["-c", str(tmp_settings_yaml), "--clock-in", "0900", "--max-rows", "2"])
    settings = build_settings(args)
    assert settings.clock_in_time == "0900"
    assert settings.max_rows == 2
    # flags left off the command line keep the YAML value
    assert settings.dry_run is True


def test_defaults_when_no_file(tmp_path):
    settings = AppSettings.from_yaml(tmp_path / "nonexistent.yaml")
    assert settings.clock_in_time == "1000"
    assert settings.clock_out_time == "1900"
    assert settings.dry_run is False
    assert settings.navigation_timeout == 30_000
    assert settings.element_timeout == 10_000
    assert settings.page_load_timeout == 10_000
    assert settings.form_wait_time == 3_000
    assert settings.after_submit_wait_time == 2_000


@pytest.mark.parametrize("value", ["930", "2400", "1260", "ab12", "10:00"])
def test_invalid_times_rejected(value):
    with pytest.raises(ValidationError):
        AppSettings(clock_in_time=value)


def test_blank_reason_rejected():
    with pytest.raises(ValidationError):
        AppSettings(application_reason="   ")


def test_retry_bounds_enforced():
    with pytest.raises(ValidationError):
        AppSettings(retry_max_attempts=0)
    with pytest.raises(ValidationError):
        AppSettings(retry_backoff_factor=0.5)


def test_settings_are_immutable():
    settings = AppSettings()
    with pytest.raises(ValidationError):
        settings.dry_run = True


def test_dotenv_value_beats_yaml(tmp_settings_yaml, tmp_path, monkeypatch):
    monkeypatch.delenv("TIMECARDPILOT_CLOCK_OUT_TIME", raising=False)
    (tmp_path / ".env").write_text("TIMECARDPILOT_CLOCK_OUT_TIME=2015\n", encoding="utf-8")
    monkeypatch.chdir(tmp_path)
    settings = AppSettings.from_yaml(tmp_settings_yaml)
    assert settings.clock_out_time == "2015"
    assert settings.clock_in_time == "0930"
