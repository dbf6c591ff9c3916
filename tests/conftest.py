"""Shared test fixtures."""

from __future__ import annotations

import pytest

from timecardpilot.settings import AppSettings


@pytest.fixture()
def tmp_settings_yaml(tmp_path):
    """Write a minimal settings.yaml and return its path."""
    content = """\
login_id: "12345"
login_password: "hunter2"
headless: true
clock_in_time: "0930"
clock_out_time: 1830
application_reason: "forgot to stamp"
dry_run: true
max_rows: 5
retry_max_attempts: 4
state_dir: "{state}"
""".format(state=str(tmp_path / ".state"))
    p = tmp_path / "settings.yaml"
    p.write_text(content, encoding="utf-8")
    return p


@pytest.fixture()
def make_settings(tmp_path):
    """Build run settings with fast retries and credentials filled in."""

    def _make(**overrides) -> AppSettings:
        values = {
            "login_id": "12345",
            "login_password": "hunter2",
            "retry_max_attempts": 3,
            "retry_base_delay": 0,
            "state_dir": str(tmp_path / ".state"),
        }
        values.update(overrides)
        return AppSettings(**values)

    return _make
