"""Tests for environment settings and logging setup."""

import logging
import os
from datetime import datetime, timezone
from unittest.mock import patch

from ..config.settings import Settings, get_settings
from ..src.logging_config import configure_logging


class TestSettings:
    """Tests for Settings."""

    def test_defaults(self):
        with patch.dict(os.environ, {}, clear=True):
            settings = Settings(_env_file=None)
        assert settings.default_target == "DOC"
        assert settings.output_dir == "distilled"
        assert settings.log_level == "INFO"
        assert settings.small_input_bytes == 300_000
        assert settings.run_clock is None
        assert not settings.has_profile_file()

    def test_environment_overrides(self):
        env = {
            "DISTILL_DEFAULT_TARGET": "HHS",
            "DISTILL_PROFILES_PATH": "/etc/distill/profiles.json",
            "DISTILL_SMALL_INPUT_BYTES": "1000",
            "DISTILL_RUN_CLOCK": "2025-03-01T12:00:00+00:00",
        }
        with patch.dict(os.environ, env, clear=True):
            settings = Settings(_env_file=None)
        assert settings.default_target == "HHS"
        assert settings.small_input_bytes == 1000
        assert settings.run_clock == datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)
        assert settings.has_profile_file()

    def test_get_settings_is_cached(self):
        get_settings.cache_clear()
        try:
            assert get_settings() is get_settings()
        finally:
            get_settings.cache_clear()


class TestLogging:
    """Tests for configure_logging."""

    def test_idempotent(self):
        root = logging.getLogger()
        configure_logging("DEBUG")
        count = len(root.handlers)
        configure_logging(logging.INFO)
        assert len(root.handlers) == count
