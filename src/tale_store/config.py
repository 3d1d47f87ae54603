"""Runtime configuration for NCBI enrichment.

Values come from the environment (a ``.env`` file is honoured) and can be
overridden from the command line.

Environment variables:
    TALE_STORE_NCBI_CACHE_DIR: Response cache directory
    TALE_STORE_NCBI_DELAY_MS: Delay between outbound batches in milliseconds
    TALE_STORE_NCBI_TIMEOUT: Request timeout in seconds
    NCBI_API_KEY: Optional E-utilities API key (raises NCBI rate limit)
"""

from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

CACHE_DIR_ENV = "TALE_STORE_NCBI_CACHE_DIR"
DELAY_ENV = "TALE_STORE_NCBI_DELAY_MS"
TIMEOUT_ENV = "TALE_STORE_NCBI_TIMEOUT"
API_KEY_ENV = "NCBI_API_KEY"

DEFAULT_DELAY_MS = 200
DEFAULT_TIMEOUT = 15.0  # seconds
DEFAULT_BATCH_SIZE = 100
DEFAULT_USER_AGENT = "tale-store/0.1.0 (NCBI bulk enrichment)"


def default_cache_dir() -> Path:
    """Return the cache directory used when none is configured."""
    return Path(tempfile.gettempdir()) / "tale-store-ncbi-cache"


def _int_from_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError:
        logger.warning(f"Ignoring invalid {name}={raw!r}, using {default}")
        return default


def _float_from_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw.strip())
    except ValueError:
        logger.warning(f"Ignoring invalid {name}={raw!r}, using {default}")
        return default


@dataclass
class NcbiSettings:
    """Settings for talking to NCBI E-utilities.

    Attributes:
        cache_dir: Directory holding cached raw responses
        delay_ms: Pause after every outbound batch
        timeout: Per-request timeout in seconds
        batch_size: Distinct accessions per enrichment batch
        api_key: Optional NCBI API key
        user_agent: Fixed client identifier sent with every request
    """

    cache_dir: Path
    delay_ms: int = DEFAULT_DELAY_MS
    timeout: float = DEFAULT_TIMEOUT
    batch_size: int = DEFAULT_BATCH_SIZE
    api_key: str | None = None
    user_agent: str = DEFAULT_USER_AGENT

    @classmethod
    def from_env(cls) -> NcbiSettings:
        """Build settings from environment variables."""
        cache_dir = os.getenv(CACHE_DIR_ENV)
        return cls(
            cache_dir=Path(cache_dir) if cache_dir else default_cache_dir(),
            delay_ms=_int_from_env(DELAY_ENV, DEFAULT_DELAY_MS),
            timeout=_float_from_env(TIMEOUT_ENV, DEFAULT_TIMEOUT),
            api_key=os.getenv(API_KEY_ENV) or None,
        )
