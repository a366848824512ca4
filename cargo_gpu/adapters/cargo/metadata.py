"""
Cargo metadata adapter — ``cargo metadata`` into typed models.

Only the fields cargo-gpu reads are modelled; everything else in the
JSON document is ignored.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from cargo_gpu.adapters.shell.command import CommandExecError, run_command
from cargo_gpu.core.errors import MissingDependencyError, QueryMetadataError

logger = logging.getLogger(__name__)

CRATES_IO_REGISTRY = "registry+https://github.com/rust-lang/crates.io-index"
CRATES_IO_SPARSE_REGISTRY = "sparse+https://index.crates.io/"


class Package(BaseModel):
    """One package in the resolved dependency graph."""

    name: str
    version: str
    manifest_path: Path
    source: str | None = None
    metadata: dict[str, Any] | None = None

    @property
    def manifest_dir(self) -> Path:
        return self.manifest_path.parent

    @property
    def is_crates_io(self) -> bool:
        return self.source in (CRATES_IO_REGISTRY, CRATES_IO_SPARSE_REGISTRY)


class Metadata(BaseModel):
    """Top-level ``cargo metadata --format-version 1`` document."""

    packages: list[Package] = Field(default_factory=list)
    workspace_root: Path
    workspace_metadata: dict[str, Any] | None = None

    def package_by_name(self, name: str) -> Package:
        """Find a package in the dependency graph by name.

        Raises:
            MissingDependencyError: No package has that name.
        """
        for package in self.packages:
            logger.debug(
                "matching provided name with package name: `%s` == `%s`?",
                name, package.name,
            )
            if package.name == name:
                return package
        raise MissingDependencyError(name)

    def find_package_by_manifest_dir(self, package_dir: Path) -> Package | None:
        """Find the package whose manifest is ``<package_dir>/Cargo.toml``."""
        wanted = (Path(package_dir).resolve() / "Cargo.toml")
        for package in self.packages:
            if package.manifest_path.resolve() == wanted:
                logger.debug("...matches package `%s`!", package.name)
                return package
        return None


def query_metadata(crate_path: Path) -> Metadata:
    """Run ``cargo metadata`` in ``crate_path`` and parse the result.

    Raises:
        QueryMetadataError: The path is invalid, cargo failed, or the
            output could not be parsed.
    """
    logger.debug("running `cargo metadata` on '%s'", crate_path)
    try:
        path = Path(crate_path).resolve(strict=True)
    except OSError as e:
        raise QueryMetadataError(
            f"failed to get an absolute path to the crate {crate_path}: {e}"
        ) from e

    try:
        result = run_command(["cargo", "metadata", "--format-version", "1"], cwd=path)
    except CommandExecError as e:
        raise QueryMetadataError(f"`cargo metadata` failed in {path}: {e}") from e

    try:
        return Metadata.model_validate(json.loads(result.stdout))
    except (json.JSONDecodeError, ValidationError) as e:
        raise QueryMetadataError(f"invalid `cargo metadata` output for {path}: {e}") from e
