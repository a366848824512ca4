"""
Backend installer — build and cache ``rustc_codegen_spirv`` for a shader crate.

Flow:

1. resolve the rust-gpu source of the shader crate,
2. write a throwaway ``rustc_codegen_spirv_dummy`` crate into
   ``<cache>/codegen/<source>/`` that depends on exactly that backend,
3. ``cargo metadata`` the dummy crate, which makes cargo download the
   backend and tells us where it lives,
4. read the toolchain channel from the backend's ``build.rs``,
5. refresh target specs and make sure the toolchain is installed,
6. ``cargo +<channel> build --release``, move the dylib next to the
   dummy crate and clear ``target/``.

A local rust-gpu checkout is built in place, with no dummy crate, and
is rebuilt on every run.
"""

from __future__ import annotations

import logging
import shutil
import sys
from pathlib import Path

from cargo_gpu.adapters.cargo.metadata import query_metadata
from cargo_gpu.adapters.shell.command import run_command
from cargo_gpu.core.cache import ensure_cache_dir
from cargo_gpu.core.errors import (
    ArtifactNotFoundError,
    ClearTargetError,
    MoveArtifactError,
    RemoveHelperLockfileError,
    WriteHelperCrateError,
)
from cargo_gpu.core.models.backend import SpirvCodegenBackend
from cargo_gpu.core.models.settings import InstallConfig
from cargo_gpu.core.models.source import CratesIOSource, GitSource, PathSource, SpirvSource
from cargo_gpu.core.services.spirv_source import (
    resolve_spirv_source,
    rust_gpu_toolchain_channel,
)
from cargo_gpu.core.services.target_specs import update_target_specs_files
from cargo_gpu.core.services.toolchain import (
    HaltToolchainInstallation,
    ensure_toolchain_installation,
)
from cargo_gpu.ui.output import user_output

logger = logging.getLogger(__name__)

BACKEND_PACKAGE = "rustc_codegen_spirv"

_DUMMY_CARGO_TOML = """\
[package]
name = "rustc_codegen_spirv_dummy"
version = "0.1.0"
edition = "2021"

[dependencies.spirv-builder]
package = "rustc_codegen_spirv"
"""


def dylib_filename(name: str, platform: str | None = None) -> str:
    """Platform file name of a dynamic library called ``name``."""
    platform = platform or sys.platform
    if platform == "win32":
        return f"{name}.dll"
    if platform == "darwin":
        return f"lib{name}.dylib"
    return f"lib{name}.so"


def dummy_cargo_toml(source: SpirvSource) -> str:
    """Cargo.toml of the dummy crate, pinning the backend to ``source``."""
    if isinstance(source, CratesIOSource):
        version_spec = f'version = "{source.version}"'
    elif isinstance(source, GitSource):
        version_spec = f'git = "{source.url}"\nrev = "{source.rev}"'
    elif isinstance(source, PathSource):
        builder_path = source.rust_gpu_repo_root / "crates" / "spirv-builder"
        version_spec = f'path = "{builder_path.as_posix()}"\nversion = "{source.version}"'
    else:
        raise TypeError(f"unsupported source: {source!r}")
    return f"{_DUMMY_CARGO_TOML}{version_spec}\n"


def write_source_files(source: SpirvSource, checkout: Path) -> None:
    """Create the dummy crate (``src/lib.rs`` and ``Cargo.toml``)."""
    if source.is_path:
        return

    logger.debug("writing `rustc_codegen_spirv_dummy` source files into %s", checkout)
    src = checkout / "src"
    try:
        src.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise WriteHelperCrateError("`src` directory", e) from e
    try:
        (src / "lib.rs").write_text("", encoding="utf-8")
    except OSError as e:
        raise WriteHelperCrateError("`src/lib.rs`", e) from e
    try:
        (checkout / "Cargo.toml").write_text(dummy_cargo_toml(source), encoding="utf-8")
    except OSError as e:
        raise WriteHelperCrateError("`Cargo.toml`", e) from e


class SpirvCodegenBackendInstaller:
    """Installs the codegen backend according to an ``InstallConfig``."""

    def __init__(self, settings: InstallConfig | None = None) -> None:
        self.settings = settings or InstallConfig()

    def install(
        self,
        shader_crate: Path,
        *,
        cache_dir: Path,
        halt: HaltToolchainInstallation | None = None,
    ) -> SpirvCodegenBackend:
        """Install (or reuse) the backend for ``shader_crate``.

        Args:
            shader_crate: Path to the shader crate.
            cache_dir: Cache root, see ``cargo_gpu.core.cache``.
            halt: Consent hooks for toolchain installation
                (default: approve silently).
        """
        halt = halt or HaltToolchainInstallation.noop()
        ensure_cache_dir(cache_dir)

        source = resolve_spirv_source(
            shader_crate,
            self.settings.spirv_builder_source,
            self.settings.spirv_builder_version,
        )
        install_dir = source.install_dir(cache_dir)

        dylib_name = dylib_filename(BACKEND_PACKAGE)
        if source.is_path:
            dest_dylib_path = install_dir / "target" / "release" / dylib_name
            skip_rebuild = False
        else:
            dest_dylib_path = install_dir / dylib_name
            artifacts_found = (
                dest_dylib_path.is_file()
                and (install_dir / "Cargo.toml").is_file()
                and (install_dir / "src" / "lib.rs").is_file()
            )
            if artifacts_found:
                logger.info("cargo-gpu artifacts found in '%s'", install_dir)
            skip_rebuild = artifacts_found and not self.settings.rebuild_codegen

        if skip_rebuild:
            logger.info("...and so we are aborting the install step.")
        else:
            write_source_files(source, install_dir)

        logger.debug("resolving toolchain version to use")
        dummy_metadata = query_metadata(install_dir)
        rustc_codegen_spirv = dummy_metadata.package_by_name(BACKEND_PACKAGE)
        toolchain_channel = rust_gpu_toolchain_channel(rustc_codegen_spirv)
        logger.info("selected toolchain channel `%s`", toolchain_channel)

        logger.debug("Update target specs files")
        target_spec_dir = update_target_specs_files(
            source, dummy_metadata, not skip_rebuild, cache_dir
        )

        logger.debug("ensure_toolchain_and_components_exist")
        ensure_toolchain_installation(toolchain_channel, halt)

        if not skip_rebuild:
            self._build(source, install_dir, toolchain_channel, dest_dylib_path)

        return SpirvCodegenBackend(
            rustc_codegen_spirv_location=dest_dylib_path,
            toolchain_channel=toolchain_channel,
            target_spec_dir=target_spec_dir,
        )

    def _build(
        self,
        source: SpirvSource,
        install_dir: Path,
        toolchain_channel: str,
        dest_dylib_path: Path,
    ) -> None:
        # The dummy lockfile may use a format the pinned toolchain rejects
        if not source.is_path:
            logger.debug("remove Cargo.lock")
            try:
                (install_dir / "Cargo.lock").unlink()
            except OSError as e:
                raise RemoveHelperLockfileError(e) from e

        user_output(f"Compiling `rustc_codegen_spirv` from {source}")

        argv = ["cargo", f"+{toolchain_channel}", "build", "--release"]
        if source.is_path:
            argv += ["-p", BACKEND_PACKAGE, "--lib"]
        logger.debug("building artifacts with `%s`", " ".join(argv))
        run_command(argv, cwd=install_dir, capture_output=False)

        target = install_dir / "target"
        dylib_path = target / "release" / dest_dylib_path.name
        if not dylib_path.is_file():
            logger.error("could not find %s", dylib_path)
            raise ArtifactNotFoundError(dylib_path)
        logger.info("successfully built %s", dylib_path)

        if source.is_path:
            return

        try:
            dylib_path.replace(dest_dylib_path)
        except OSError as e:
            raise MoveArtifactError(e) from e

        if self.settings.clear_target:
            logger.warning("clearing target dir %s", target)
            try:
                shutil.rmtree(target)
            except OSError as e:
                raise ClearTargetError(e) from e
