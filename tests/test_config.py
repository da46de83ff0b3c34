"""Tests for strata/config.py — construct Settings directly, bypassing module singleton."""

import pytest
from pydantic import ValidationError

from strata.config import Settings, get_settings, reset_settings, settings


def make_settings(monkeypatch, **overrides):
    """Apply env overrides then construct a fresh Settings instance."""
    for k, v in overrides.items():
        monkeypatch.setenv(f"STRATA_{k.upper()}", str(v))
    return Settings()


def test_defaults(monkeypatch):
    s = make_settings(monkeypatch)
    assert s.mutation_max_attempts == 2
    assert s.mutation_backoff_seconds == 0.5
    assert s.bridge_timeout == 300.0
    assert s.history_turns == 10


def test_env_override(monkeypatch):
    s = make_settings(monkeypatch, MUTATION_MAX_ATTEMPTS="4", TIMEZONE="Europe/Berlin")
    assert s.mutation_max_attempts == 4
    assert s.timezone == "Europe/Berlin"


def test_zero_bridge_timeout_waits_forever(monkeypatch):
    s = make_settings(monkeypatch, BRIDGE_TIMEOUT_SECONDS="0")
    assert s.bridge_timeout is None


def test_attempts_must_be_positive(monkeypatch):
    with pytest.raises(ValidationError):
        make_settings(monkeypatch, MUTATION_MAX_ATTEMPTS="0")


def test_derived_paths_use_data_dir(monkeypatch, tmp_path):
    s = make_settings(monkeypatch, DATA_DIR=str(tmp_path))
    assert s.db_path.startswith(str(tmp_path))
    assert s.db_path.endswith("strata.db")
    assert s.logs_dir.startswith(str(tmp_path))


def test_proxy_reads_singleton(monkeypatch):
    monkeypatch.setenv("STRATA_HISTORY_TURNS", "3")
    reset_settings()
    assert settings.history_turns == 3
    assert get_settings() is get_settings()
