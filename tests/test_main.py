"""Tests for the command-line entry point and its exit codes."""

from __future__ import annotations

import asyncio

import pytest

import timecardpilot.__main__ as entry
from timecardpilot.exceptions import LoginFailedError
from timecardpilot.models import RunMetrics


class _StubPipeline:
    error: Exception | None = None

    def __init__(self, settings) -> None:
        self.settings = settings

    async def run(self) -> RunMetrics:
        if self.error is not None:
            raise self.error
        return RunMetrics()


@pytest.fixture()
def config_path(tmp_path):
    p = tmp_path / "settings.yaml"
    p.write_text('state_dir: "{}"\n'.format(tmp_path / ".state"), encoding="utf-8")
    return p


def test_invalid_configuration_exits_2(config_path):
    with pytest.raises(SystemExit) as info:
        entry.main(["-c", str(config_path), "--clock-in", "2500"])
    assert info.value.code == entry.EXIT_CONFIG


def test_normal_completion_exits_0(config_path, monkeypatch):
    monkeypatch.setattr(entry, "CorrectionPipeline", _StubPipeline)
    with pytest.raises(SystemExit) as info:
        entry.main(["-c", str(config_path), "--dry-run"])
    assert info.value.code == entry.EXIT_OK


def test_fatal_error_exits_1(config_path, monkeypatch):
    class _Failing(_StubPipeline):
        error = LoginFailedError("Login failed: Unknown error")

    monkeypatch.setattr(entry, "CorrectionPipeline", _Failing)
    with pytest.raises(SystemExit) as info:
        entry.main(["-c", str(config_path)])
    assert info.value.code == entry.EXIT_FATAL


def test_log_files_created(config_path, tmp_path, monkeypatch):
    monkeypatch.setattr(entry, "CorrectionPipeline", _StubPipeline)
    with pytest.raises(SystemExit):
        entry.main(["-c", str(config_path), "--debug"])
    assert (tmp_path / ".state" / "logs" / "application.log").exists()
    assert (tmp_path / ".state" / "logs" / "error.log").exists()


def test_unhandled_background_error_exits_1(config_path, monkeypatch):
    class _Leaky(_StubPipeline):
        async def run(self) -> RunMetrics:
            asyncio.get_running_loop().call_exception_handler(
                {"message": "Task exception was never retrieved",
                 "exception": RuntimeError("stray task failed")}
            )
            return RunMetrics()

    monkeypatch.setattr(entry, "CorrectionPipeline", _Leaky)
    with pytest.raises(SystemExit) as info:
        entry.main(["-c", str(config_path)])
    assert info.value.code == entry.EXIT_FATAL
