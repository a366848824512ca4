"""
Error taxonomy — every failure cargo-gpu reports to the user.

All errors derive from ``CargoGpuError`` so the CLI can catch one type,
log the chain and print a single summary line.  Each module raises its
own subclasses; wrapping happens with ``raise ... from e``.
"""

from __future__ import annotations

from pathlib import Path


class CargoGpuError(Exception):
    """Base class for every error raised by cargo-gpu."""


# ── Cache directory ─────────────────────────────────────────────


class CacheDirError(CargoGpuError):
    """No cache directory could be determined for this user."""

    def __init__(self) -> None:
        super().__init__("could not find cache directory")


class CreateCacheDirError(CargoGpuError):
    """The cache directory could not be created."""

    def __init__(self, cache_dir: Path, reason: object) -> None:
        self.cache_dir = cache_dir
        super().__init__(f"failed to create cache directory {cache_dir}: {reason}")


# ── Cargo metadata ──────────────────────────────────────────────


class QueryMetadataError(CargoGpuError):
    """``cargo metadata`` could not be run or its output parsed."""


class MissingDependencyError(CargoGpuError):
    """A package expected in the dependency graph is absent."""

    def __init__(self, package_name: str) -> None:
        self.package_name = package_name
        super().__init__(
            f"`{package_name}` not found in `Cargo.toml` or its dependency graph"
        )


# ── SPIR-V source ───────────────────────────────────────────────


class SpirvSourceError(CargoGpuError):
    """The backend source could not be determined."""


class InvalidVersionError(SpirvSourceError):
    def __init__(self, version: str) -> None:
        self.version = version
        super().__init__(f"`{version}` is not a valid semantic version")


class AmbiguousSourceError(SpirvSourceError):
    def __init__(self, source: str) -> None:
        self.source = source
        super().__init__(
            f"`spirv-std` source is both a git repository and crates.io: {source}"
        )


class UnknownSourceError(SpirvSourceError):
    def __init__(self, source: str) -> None:
        self.source = source
        super().__init__(f"unknown `spirv-std` source: {source}")


class InvalidSourceFormatError(SpirvSourceError):
    def __init__(self, source: str) -> None:
        self.source = source
        super().__init__(
            f"`spirv-std` git source has no revision (expected `#<rev>`): {source}"
        )


class InvalidManifestPathError(SpirvSourceError):
    def __init__(self, manifest_path: Path) -> None:
        self.manifest_path = manifest_path
        super().__init__(
            f"could not find rust-gpu repository root from `spirv-std` manifest "
            f"{manifest_path}"
        )


# ── Toolchain channel ───────────────────────────────────────────


class ToolchainChannelError(CargoGpuError):
    """The channel could not be read from ``rustc_codegen_spirv``'s build.rs."""


class ManifestAtRootError(ToolchainChannelError):
    def __init__(self) -> None:
        super().__init__("package manifest was located at root")


class InvalidBuildScriptError(ToolchainChannelError):
    def __init__(self, path: Path, reason: object) -> None:
        self.path = path
        super().__init__(f"could not read build script {path}: {reason}")


class ChannelStartNotFoundError(ToolchainChannelError):
    def __init__(self, path: Path) -> None:
        self.path = path
        super().__init__(f"`channel = \"` line not found in {path}")


class ChannelEndNotFoundError(ToolchainChannelError):
    def __init__(self, line: str) -> None:
        self.line = line
        super().__init__(f"closing quote of channel not found in line: {line}")


class InvalidChannelSliceError(ToolchainChannelError):
    def __init__(self, line: str) -> None:
        self.line = line
        super().__init__(f"could not slice channel out of line: {line}")


# ── Toolchain installation ──────────────────────────────────────


class ToolchainInstallError(CargoGpuError):
    """Installing the toolchain or its components was refused or failed."""


class NoTTYError(ToolchainInstallError):
    def __init__(self) -> None:
        super().__init__(
            "no TTY detected so can't ask for consent to install Rust toolchain, "
            "pass --auto-install-rust-toolchain to install without asking"
        )


class UserDeniedError(ToolchainInstallError):
    def __init__(self, channel: str) -> None:
        self.channel = channel
        super().__init__(f"user denied installation of Rust toolchain `{channel}`")


# ── Target specs ────────────────────────────────────────────────


class TargetSpecsError(CargoGpuError):
    """Target spec files could not be resolved or written."""


class InvalidTargetSpecsDependencyError(TargetSpecsError):
    def __init__(self) -> None:
        super().__init__(
            "could not find `target-specs` directory within "
            "`rustc_codegen_spirv-target-specs` dependency"
        )


class CopySpecFilesError(TargetSpecsError):
    def __init__(self, reason: object) -> None:
        super().__init__(f"could not copy target specs files: {reason}")


class CreateDirError(TargetSpecsError):
    def __init__(self, path: Path, reason: object) -> None:
        self.path = path
        super().__init__(f"failed to create target specs directory at {path}: {reason}")


class WriteFileError(TargetSpecsError):
    def __init__(self, path: Path, reason: object) -> None:
        self.path = path
        super().__init__(f"failed to write target spec file at {path}: {reason}")


# ── Backend installation ────────────────────────────────────────


class BackendInstallError(CargoGpuError):
    """Building or caching ``rustc_codegen_spirv`` failed."""


class WriteHelperCrateError(BackendInstallError):
    def __init__(self, what: str, reason: object) -> None:
        super().__init__(f"failed to write {what} for `rustc_codegen_spirv_dummy`: {reason}")


class RemoveHelperLockfileError(BackendInstallError):
    def __init__(self, reason: object) -> None:
        super().__init__(
            f"failed to remove `Cargo.lock` file for `rustc_codegen_spirv_dummy`: {reason}"
        )


class ArtifactNotFoundError(BackendInstallError):
    def __init__(self, path: Path) -> None:
        self.path = path
        super().__init__(
            f"`rustc_codegen_spirv` build did not produce the expected dylib at {path}"
        )


class MoveArtifactError(BackendInstallError):
    def __init__(self, reason: object) -> None:
        super().__init__(
            f"failed to move `rustc_codegen_spirv` to final location: {reason}"
        )


class ClearTargetError(BackendInstallError):
    def __init__(self, reason: object) -> None:
        super().__init__(
            "failed to remove `target` dir from compiled codegen "
            f"`rustc_codegen_spirv`: {reason}"
        )


class MissingTargetError(CargoGpuError):
    def __init__(self) -> None:
        super().__init__("shader target must be set before configuring the builder")


# ── Lockfiles ───────────────────────────────────────────────────


class LockfileError(CargoGpuError):
    """A Cargo.lock could not be checked, rewritten or reverted."""


class QueryRustcVersionError(LockfileError):
    pass


class ReadLockfileError(LockfileError):
    def __init__(self, path: Path, reason: object) -> None:
        self.path = path
        super().__init__(f"could not read lockfile {path}: {reason}")


class RewriteLockfileError(LockfileError):
    def __init__(self, path: Path, reason: object) -> None:
        self.path = path
        super().__init__(f"could not rewrite lockfile {path}: {reason}")


class TooFewLinesInLockfileError(LockfileError):
    def __init__(self, path: Path) -> None:
        self.path = path
        super().__init__(f"too few lines in lockfile {path} to read its version")


class UnrecognizedLockfileVersionError(LockfileError):
    def __init__(self, path: Path, line: str) -> None:
        self.path = path
        self.line = line
        super().__init__(f"unrecognized lockfile version in {path}: {line!r}")


class ConflictingVersionsError(LockfileError):
    def __init__(self, path: Path) -> None:
        self.path = path
        super().__init__(
            f"conflicting `Cargo.lock` versions detected in {path}\n"
            "Because a dedicated Rust toolchain for compiling shaders is being "
            "used, it's possible that the `Cargo.lock` manifest version of the "
            "shader crate does not match the `Cargo.lock` manifest version of the "
            "workspace. This is due to a change in the defaults introduced in "
            "Rust 1.83.0.\n"
            "One way to resolve this is to force the workspace to use the same "
            "version of Rust as required by the shader. However that is not "
            "often ideal or even possible. Another way is to exclude the shader "
            "from the workspace. This is also not ideal if you have many shaders "
            "sharing config from the workspace.\n"
            "Therefore `cargo gpu build/install` offers a workaround with the "
            "argument:\n"
            "  --force-overwrite-lockfiles-v4-to-v3\n"
            "which corresponds to the `force-overwrite-lockfiles-v4-to-v3` "
            "setting in `[package.metadata.rust-gpu.install]`. It will "
            "temporarily overwrite the shader's `Cargo.lock` manifest version to "
            "v3 and restore it once the build has finished."
        )


# ── Shader build ────────────────────────────────────────────────


class ShaderBuildError(CargoGpuError):
    """The external shader builder failed or produced unusable output."""
