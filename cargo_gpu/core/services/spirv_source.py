"""
SPIR-V source resolution — which rust-gpu a shader crate needs.

Explicit ``--spirv-builder-source`` / ``--spirv-builder-version`` win;
otherwise the ``spirv-std`` dependency of the shader crate decides.
Also reads the toolchain channel out of ``rustc_codegen_spirv``'s
build script.
"""

from __future__ import annotations

import logging
from pathlib import Path

from cargo_gpu.adapters.cargo.metadata import Package, query_metadata
from cargo_gpu.core.errors import (
    AmbiguousSourceError,
    ChannelEndNotFoundError,
    ChannelStartNotFoundError,
    InvalidBuildScriptError,
    InvalidChannelSliceError,
    InvalidManifestPathError,
    InvalidSourceFormatError,
    InvalidVersionError,
    ManifestAtRootError,
    UnknownSourceError,
)
from cargo_gpu.core.models.source import CratesIOSource, GitSource, PathSource, SpirvSource
from cargo_gpu.core.models.version import Version

logger = logging.getLogger(__name__)

SPIRV_STD_PACKAGE = "spirv-std"
_CHANNEL_START = 'channel = "'


def resolve_spirv_source(
    shader_crate: Path,
    source: str | None = None,
    version: str | None = None,
) -> SpirvSource:
    """Determine the backend source for a shader crate.

    Args:
        shader_crate: Path to the shader crate.
        source: Git repository URL override.
        version: Version override.  A git revision when ``source`` is
            given, a crates.io semantic version otherwise.
    """
    if source and version:
        return GitSource(url=source, rev=version)
    if version:
        try:
            return CratesIOSource(Version.parse(version))
        except ValueError as e:
            raise InvalidVersionError(version) from e
    return spirv_source_from_shader(shader_crate)


def spirv_source_from_shader(shader_crate: Path) -> SpirvSource:
    """Look at the shader crate's ``spirv-std`` dependency."""
    metadata = query_metadata(shader_crate)
    spirv_std = metadata.package_by_name(SPIRV_STD_PACKAGE)
    result = parse_spirv_std_source_and_version(spirv_std)
    logger.debug("Parsed `SpirvSource` from crate `%s`: %r", shader_crate, result)
    return result


def parse_spirv_std_source_and_version(package: Package) -> SpirvSource:
    """Classify a ``spirv-std`` package by its source.

    ``git+https://github.com/Rust-GPU/rust-gpu?rev=54f6978c#54f6978c``
    becomes ``GitSource("https://github.com/Rust-GPU/rust-gpu", "54f6978c")``.
    """
    source = package.source
    if source is not None:
        is_git = source.startswith("git+")
        is_crates_io = package.is_crates_io
        if is_git and is_crates_io:
            raise AmbiguousSourceError(source)
        if is_git:
            return _parse_git(source)
        if is_crates_io:
            return CratesIOSource(_parse_version(package.version))
        raise UnknownSourceError(source)

    # rust-gpu/crates/spirv-std/Cargo.toml -> rust-gpu
    manifest_path = package.manifest_path
    repo_root = manifest_path.parent.parent.parent
    if repo_root == manifest_path.parent.parent or not repo_root.is_dir():
        raise InvalidManifestPathError(manifest_path)
    return PathSource(rust_gpu_repo_root=repo_root, version=_parse_version(package.version))


def _parse_git(source: str) -> GitSource:
    link = source[4:]
    sharp = link.find("#")
    if sharp == -1:
        raise InvalidSourceFormatError(source)
    question = link.find("?")
    url_end = question if question != -1 else sharp
    return GitSource(url=link[:url_end], rev=link[sharp + 1:])


def _parse_version(text: str) -> Version:
    try:
        return Version.parse(text)
    except ValueError as e:
        raise InvalidVersionError(text) from e


def rust_gpu_toolchain_channel(rustc_codegen_spirv: Package) -> str:
    """Read the required toolchain channel from the backend's build.rs.

    The build script pins it on a line like
    ``channel = "nightly-2024-04-24"``.
    """
    manifest_path = rustc_codegen_spirv.manifest_path
    if manifest_path.parent == manifest_path:
        raise ManifestAtRootError()
    build_script = manifest_path.parent / "build.rs"

    logger.debug("parsing `build.rs` at %s for the used toolchain", build_script)
    try:
        contents = build_script.read_text(encoding="utf-8")
    except OSError as e:
        raise InvalidBuildScriptError(build_script, e) from e

    channel_line = next(
        (line for line in contents.splitlines() if line.startswith(_CHANNEL_START)), None
    )
    if channel_line is None:
        raise ChannelStartNotFoundError(build_script)

    start = len(_CHANNEL_START)
    rel_end = channel_line[start:].find('"')
    if rel_end == -1:
        raise ChannelEndNotFoundError(channel_line)
    end = start + rel_end

    channel = channel_line[start:end]
    if not channel:
        raise InvalidChannelSliceError(channel_line)
    return channel
