"""
Cache directory — where built backends and target specs live.

Default locations by OS:
    Windows   %LOCALAPPDATA%\\rust-gpu
    macOS     ~/Library/Caches/rust-gpu
    other     $XDG_CACHE_HOME/rust-gpu  (or ~/.cache/rust-gpu)

``CARGO_GPU_CACHE_DIR`` or an explicit path overrides the default.
The resolved directory is passed down explicitly; nothing here keeps
process-wide state.
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

from cargo_gpu.core.errors import CacheDirError, CreateCacheDirError

logger = logging.getLogger(__name__)

CACHE_DIR_ENV = "CARGO_GPU_CACHE_DIR"
CACHE_DIR_NAME = "rust-gpu"


def default_cache_dir() -> Path:
    """Return the OS cache directory joined with ``rust-gpu``.

    Raises:
        CacheDirError: No home directory could be determined.
    """
    try:
        home = Path.home()
    except RuntimeError as e:
        raise CacheDirError() from e

    if sys.platform == "win32":
        local = os.environ.get("LOCALAPPDATA")
        root = Path(local) if local else home / "AppData" / "Local"
    elif sys.platform == "darwin":
        root = home / "Library" / "Caches"
    else:
        root = Path(os.environ.get("XDG_CACHE_HOME") or str(home / ".cache")).expanduser()

    return root / CACHE_DIR_NAME


def resolve_cache_dir(override: Path | str | None = None) -> Path:
    """Resolve the cache root: explicit override > env var > OS default."""
    if override:
        return Path(override).expanduser()
    env_override = os.environ.get(CACHE_DIR_ENV)
    if env_override:
        return Path(env_override).expanduser()
    return default_cache_dir()


def ensure_cache_dir(cache_dir: Path) -> Path:
    """Create the cache directory (and parents) if missing."""
    try:
        cache_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise CreateCacheDirError(cache_dir, e) from e
    logger.info("cache directory is '%s'", cache_dir)
    return cache_dir
