"""On-disk cache of raw NCBI responses.

One text file per (category, key) pair, named ``<category>_<key>.txt`` with
every character outside ``[A-Za-z0-9_.-]`` in the key replaced by ``_``.
Only successful responses are written; a missing or empty file means "not
fetched yet", never "fetch failed".
"""

from __future__ import annotations

import logging
import re
import threading
from pathlib import Path

logger = logging.getLogger(__name__)

_UNSAFE_RE = re.compile(r"[^A-Za-z0-9_.-]")


def sanitize_key(key: str) -> str:
    """Make a cache key safe for use in a file name."""
    return _UNSAFE_RE.sub("_", key)


class ResponseCache:
    """File-per-key response cache.

    Writes to the same key are serialized with a per-key lock, so workers
    sharing one cache never interleave partial files.
    """

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def path_for(self, category: str, key: str) -> Path:
        """Get cache file path for a given category and key."""
        return self.directory / f"{category}_{sanitize_key(key)}.txt"

    def _lock_for(self, path: Path) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(str(path), threading.Lock())

    def get(self, category: str, key: str) -> str | None:
        """Return cached text, or None when absent or empty."""
        path = self.path_for(category, key)
        if not path.exists():
            return None
        try:
            content = path.read_text(encoding="utf-8").strip()
        except OSError as e:
            logger.debug(f"Failed to load cache for {category}:{key}: {e}")
            return None
        if not content:
            return None
        logger.debug(f"Cache hit {category}:{key}")
        return content

    def put(self, category: str, key: str, text: str | None) -> None:
        """Store a successful response; empty text is ignored."""
        if text is None or not text.strip():
            return
        path = self.path_for(category, key)
        with self._lock_for(path):
            tmp = path.with_suffix(".tmp")
            try:
                tmp.write_text(text, encoding="utf-8")
                tmp.replace(path)
            except OSError as e:
                logger.warning(f"Failed to save cache for {category}:{key}: {e}")
