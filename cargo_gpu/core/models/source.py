"""
SPIR-V source model — where a rust-gpu backend comes from.

A source is one of three variants:

    CratesIOSource   published on crates.io, keyed by version
    GitSource        a git repository at a revision
    PathSource       a local rust-gpu checkout

The display string of a source doubles as its cache key, see
``install_dir``.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from cargo_gpu.core.models.version import Version

_DIRNAME_REPLACED = (os.sep, "\\", "/", ".", ":", "@", "=")
_DIRNAME_REMOVED = ("{", "}", " ", "\n", '"', "'")


def to_dirname(text: str) -> str:
    """Turn a source display string into a single directory name."""
    for ch in _DIRNAME_REPLACED:
        text = text.replace(ch, "_")
    for ch in _DIRNAME_REMOVED:
        text = text.replace(ch, "")
    return text


class SpirvSource:
    """Base of the source variants."""

    @property
    def is_path(self) -> bool:
        return False

    def install_dir(self, cache_dir: Path) -> Path:
        """Directory in which the backend for this source is built.

        Two git revisions sharing their first 8 characters map to the
        same directory.
        """
        return cache_dir / "codegen" / to_dirname(str(self))


@dataclass(frozen=True)
class CratesIOSource(SpirvSource):
    version: Version

    def __str__(self) -> str:
        return str(self.version)


@dataclass(frozen=True)
class GitSource(SpirvSource):
    url: str
    rev: str

    def __str__(self) -> str:
        return f"{self.url}+{self.rev[:8]}"


@dataclass(frozen=True)
class PathSource(SpirvSource):
    rust_gpu_repo_root: Path
    version: Version

    @property
    def is_path(self) -> bool:
        return True

    def install_dir(self, cache_dir: Path) -> Path:
        # Local checkouts are built in place
        return self.rust_gpu_repo_root

    def __str__(self) -> str:
        return f"{self.rust_gpu_repo_root}+{self.version}"
