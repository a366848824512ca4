"""
Target specs — the JSON files rustc needs for ``spirv-unknown-*`` targets.

Two generations of backends exist:

* newer ``rustc_codegen_spirv`` depends on
  ``rustc_codegen_spirv-target-specs``, whose ``target-specs`` directory
  is copied next to the built backend;
* older ones need the legacy set bundled here, which must never change.
"""

from __future__ import annotations

import json
import logging
import shutil
from pathlib import Path

from cargo_gpu.adapters.cargo.metadata import Metadata
from cargo_gpu.core.errors import (
    CopySpecFilesError,
    CreateDirError,
    InvalidTargetSpecsDependencyError,
    MissingDependencyError,
    WriteFileError,
)
from cargo_gpu.core.models.source import SpirvSource

logger = logging.getLogger(__name__)

TARGET_SPECS_PACKAGE = "rustc_codegen_spirv-target-specs"
LEGACY_LOCAL_CHECKOUT_DIR = "legacy-target-specs-for-local-checkout"

_LEGACY_ENVS = (
    "opengl4.0", "opengl4.1", "opengl4.2", "opengl4.3", "opengl4.5",
    "spv1.0", "spv1.1", "spv1.2", "spv1.3", "spv1.4", "spv1.5",
    "vulkan1.0", "vulkan1.1", "vulkan1.1spv1.4", "vulkan1.2",
)


def _legacy_spec(env: str) -> str:
    spec = {
        "allows-weak-linkage": False,
        "arch": "spirv",
        "crt-objects-fallback": "false",
        "crt-static-allows-dylibs": True,
        "data-layout": "e-m:e-p:32:32:32-i64:64-n8:16:32:64",
        "dll-prefix": "",
        "dll-suffix": ".spv.json",
        "dynamic-linking": True,
        "emit-debug-gdb-scripts": False,
        "env": env,
        "linker-flavor": "unix",
        "linker-is-gnu": False,
        "llvm-target": f"spirv-unknown-{env}",
        "main-needs-argc-argv": False,
        "os": "unknown",
        "panic-strategy": "abort",
        "simd-types-indirect": False,
        "target-pointer-width": "32",
    }
    return json.dumps(spec, indent=2) + "\n"


LEGACY_TARGET_SPECS: dict[str, str] = {
    f"spirv-unknown-{env}.json": _legacy_spec(env) for env in _LEGACY_ENVS
}
"""Filename → contents of the legacy target specs."""


def available_spirv_targets() -> list[str]:
    """Vulkan targets of the legacy set, without the ``.json`` suffix."""
    return [
        name.removesuffix(".json") for name in LEGACY_TARGET_SPECS if "vulkan" in name
    ]


def write_legacy_target_specs(target_spec_dir: Path) -> None:
    """Write every legacy target spec into ``target_spec_dir``."""
    try:
        target_spec_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise CreateDirError(target_spec_dir, e) from e

    for filename, contents in LEGACY_TARGET_SPECS.items():
        path = target_spec_dir / filename
        try:
            path.write_text(contents, encoding="utf-8")
        except OSError as e:
            raise WriteFileError(path, e) from e


def _copy_spec_files(src: Path, dst: Path) -> None:
    # Flat directory: regular files only
    dst.mkdir(parents=True, exist_ok=True)
    for entry in src.iterdir():
        if entry.is_file():
            shutil.copy2(entry, dst / entry.name)


def update_target_specs_files(
    source: SpirvSource,
    metadata: Metadata,
    update_files: bool,
    cache_dir: Path,
) -> Path:
    """Pick the target-spec directory for ``source`` and refresh it.

    Args:
        source: Backend source being installed.
        metadata: Cargo metadata of the helper crate (or local checkout).
        update_files: Copy/write files; False only resolves the path.
        cache_dir: Cache root.

    Returns:
        Directory containing ``<target>.json`` files.
    """
    logger.info(
        "target-specs: Resolving target specs `%s`",
        "and update them" if update_files else "without updating",
    )

    target_specs_dst = source.install_dir(cache_dir) / "target-specs"
    try:
        target_specs = metadata.package_by_name(TARGET_SPECS_PACKAGE)
    except MissingDependencyError:
        target_specs = None

    if target_specs is not None:
        logger.info(
            "target-specs: found crate `%s` with manifest at `%s`",
            TARGET_SPECS_PACKAGE, target_specs.manifest_path,
        )
        target_specs_src = target_specs.manifest_dir / "target-specs"
        if not target_specs_src.is_dir():
            raise InvalidTargetSpecsDependencyError()

        if source.is_path:
            logger.info(
                "target-specs: source is local path, use target-specs directly from `%s`",
                target_specs_src,
            )
            return target_specs_src

        logger.info(
            "target-specs: copying target-specs from `%s`%s",
            target_specs_src, "" if update_files else " was skipped",
        )
        if update_files:
            try:
                _copy_spec_files(target_specs_src, target_specs_dst)
            except OSError as e:
                raise CopySpecFilesError(e) from e
        return target_specs_dst

    # Legacy specs must not be dumped into a local rust-gpu checkout,
    # so those share one directory in the cache.
    if source.is_path:
        target_specs_dst = cache_dir / LEGACY_LOCAL_CHECKOUT_DIR
    logger.info(
        "target-specs: legacy target specs in directory `%s`", target_specs_dst
    )
    if update_files:
        logger.info("target-specs: writing legacy target specs into `%s`", target_specs_dst)
        write_legacy_target_specs(target_specs_dst)
    return target_specs_dst
