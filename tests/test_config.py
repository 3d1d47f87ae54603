"""Tests for environment-driven settings."""

import os
from pathlib import Path
from unittest.mock import patch

from tale_store.config import (
    API_KEY_ENV,
    CACHE_DIR_ENV,
    DEFAULT_BATCH_SIZE,
    DEFAULT_DELAY_MS,
    DELAY_ENV,
    TIMEOUT_ENV,
    NcbiSettings,
)

ENV_KEYS = (API_KEY_ENV, CACHE_DIR_ENV, DELAY_ENV, TIMEOUT_ENV)


def _clean_env() -> dict[str, str]:
    return {k: v for k, v in os.environ.items() if k not in ENV_KEYS}


class TestNcbiSettings:
    """Tests for NcbiSettings.from_env()."""

    def test_defaults(self) -> None:
        """Test defaults with no variables set."""
        with patch.dict(os.environ, _clean_env(), clear=True):
            settings = NcbiSettings.from_env()

        assert settings.delay_ms == DEFAULT_DELAY_MS
        assert settings.batch_size == DEFAULT_BATCH_SIZE
        assert settings.api_key is None

    def test_overrides(self, tmp_path: Path) -> None:
        """Test values read from the environment."""
        env = {
            **_clean_env(),
            CACHE_DIR_ENV: str(tmp_path),
            DELAY_ENV: "50",
            TIMEOUT_ENV: "2.5",
            API_KEY_ENV: "secret",
        }
        with patch.dict(os.environ, env, clear=True):
            settings = NcbiSettings.from_env()

        assert settings.cache_dir == tmp_path
        assert settings.delay_ms == 50
        assert settings.timeout == 2.5
        assert settings.api_key == "secret"

    def test_invalid_number_falls_back(self) -> None:
        """Test that unparseable numbers use the default."""
        with patch.dict(os.environ, {**_clean_env(), DELAY_ENV: "soon"}, clear=True):
            assert NcbiSettings.from_env().delay_ms == DEFAULT_DELAY_MS
