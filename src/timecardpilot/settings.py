"""Pydantic-based settings loaded from YAML with env-var overrides."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, DotEnvSettingsSource, EnvSettingsSource


_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


class AppSettings(BaseSettings):
    """Resolved run configuration with YAML + env var support.

    Env vars are prefixed with ``TIMECARDPILOT_``.
    Example: ``TIMECARDPILOT_LOGIN_ID=12345``
    """

    model_config = {
        "env_prefix": "TIMECARDPILOT_",
        "env_file": ".env",
        "extra": "ignore",
        "frozen": True,
    }

    # --- credentials ---
    login_id: str = ""
    login_password: str = ""
    login_url: str = "https://login.ta.kingoftime.jp/admin"

    # --- correction content ---
    clock_in_time: str = "1000"  # HHMM
    clock_out_time: str = "1900"  # HHMM
    application_reason: str = "x"

    # --- browser ---
    headless: bool = False
    slow_mo: int = 0  # ms between Playwright actions

    # --- run mode ---
    dry_run: bool = False
    debug: bool = False
    max_rows: int = Field(default=0, ge=0)  # 0 = unlimited

    # --- timeouts (ms) ---
    navigation_timeout: int = Field(default=30_000, gt=0)
    element_timeout: int = Field(default=10_000, gt=0)
    page_load_timeout: int = Field(default=10_000, gt=0)

    # --- settle delays (ms) ---
    form_wait_time: int = Field(default=3_000, ge=0)
    after_submit_wait_time: int = Field(default=2_000, ge=0)
    poll_wait_time: int = Field(default=2_000, ge=0)

    # --- retry ---
    retry_max_attempts: int = Field(default=3, ge=1)
    retry_base_delay: int = Field(default=1_000, ge=0)  # ms
    retry_backoff_factor: float = Field(default=2.0, ge=1.0)
    retry_missing_elements: bool = True

    # --- paths ---
    state_dir: str = ".state"

    @field_validator("clock_in_time", "clock_out_time", mode="before")
    @classmethod
    def _validate_hhmm(cls, v: Any) -> str:
        v = str(v).strip()
        if len(v) != 4 or not v.isdigit():
            raise ValueError(f"time must be 4-digit HHMM, got {v!r}")
        hours, minutes = int(v[:2]), int(v[2:])
        if hours > 23 or minutes > 59:
            raise ValueError(f"time out of range: {v!r}")
        return v

    @field_validator("application_reason")
    @classmethod
    def _validate_reason(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("application_reason must not be empty")
        return v

    # ---- factory ----

    @classmethod
    def from_yaml(
        cls, path: str | Path | None = None, **overrides: Any
    ) -> "AppSettings":
        """Load settings from a YAML file, then overlay env vars and *overrides*.

        Priority: *overrides* (CLI) > env vars (``TIMECARDPILOT_*``, process
        environment or ``.env``) > YAML. ``None`` overrides are ignored.
        """
        if path is None:
            path = _PROJECT_ROOT / "settings.yaml"
        path = Path(path)
        raw: dict[str, Any] = {}
        if path.exists():
            with open(path) as fh:
                raw = yaml.safe_load(fh) or {}

        # Let env vars override YAML: remove YAML keys that have an env override
        env_values = {**DotEnvSettingsSource(cls)(), **EnvSettingsSource(cls)()}
        for key in list(raw.keys()):
            if key in env_values:
                del raw[key]

        raw.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**raw)
