"""Tests for application configuration and settings.

This module contains unit tests for the Settings Pydantic model in
regionmap.core.config. It ensures default values, environment overrides,
the explicit ingestion options and get_settings caching work as expected.
"""

from __future__ import annotations

import pydantic
import pytest

from regionmap.core import config


def test_settings_defaults() -> None:
    """Test that Settings has expected default values."""
    settings = config.Settings()
    assert settings.database_url.startswith("postgresql://")
    assert settings.max_upload_size_bytes == 64 * 1024 * 1024
    assert settings.allow_origins == ["*"]
    assert settings.simplify_tolerance == 0.00005
    assert settings.grid_size is None
    assert settings.max_ancestor_depth == 10


def test_settings_env_override(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that environment variables override defaults."""
    monkeypatch.setenv("SIMPLIFY_TOLERANCE", "0.001")
    monkeypatch.setenv("MAX_ANCESTOR_DEPTH", "3")
    settings = config.Settings()
    assert settings.simplify_tolerance == 0.001
    assert settings.max_ancestor_depth == 3


def test_ingest_options_from_settings() -> None:
    """Test that ingestion options carry the configured geometry settings."""
    settings = config.Settings(simplify_tolerance=0.01, grid_size=1e-6)
    options = settings.ingest_options()
    assert options == config.IngestOptions(tolerance=0.01, grid_size=1e-6)


def test_ingest_options_default_tolerance() -> None:
    """Test the default ingestion tolerance of roughly 5.5 m."""
    assert config.IngestOptions().tolerance == 0.00005
    assert config.IngestOptions().grid_size is None


def test_get_settings_cached() -> None:
    """Test that get_settings returns cached instance."""
    assert config.get_settings() is config.get_settings()


def test_settings_reject_negative_tolerance() -> None:
    """Test that a negative simplification tolerance is rejected."""
    with pytest.raises(pydantic.ValidationError):
        config.Settings(simplify_tolerance=-1.0)
