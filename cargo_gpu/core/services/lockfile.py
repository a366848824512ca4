"""
Lockfile mismatch handler — keep Cargo.lock v3/v4 from breaking a build.

Rust 1.83.0 started writing Cargo.lock format v4, which older toolchains
cannot read.  The shader toolchain pinned by rust-gpu is often older
than the workspace toolchain (or the other way round), so a build can
trip over a lockfile written by the other one.

With ``--force-overwrite-lockfiles-v4-to-v3`` the handler temporarily
downgrades such lockfiles to v3 and restores them afterwards.  Use it
as a context manager, or call ``finish()`` / ``abort()`` explicitly:

    with LockfileMismatchHandler.new(crate, channel, force) as handler:
        build()
        handler.finish()
"""

from __future__ import annotations

import logging
from pathlib import Path

from cargo_gpu.adapters.shell.command import CommandExecError, run_command
from cargo_gpu.core.errors import (
    ConflictingVersionsError,
    LockfileError,
    QueryRustcVersionError,
    ReadLockfileError,
    RewriteLockfileError,
    TooFewLinesInLockfileError,
    UnrecognizedLockfileVersionError,
)
from cargo_gpu.core.models.version import Version

logger = logging.getLogger(__name__)

RUST_VERSION_THAT_USES_V4_CARGO_LOCKS = Version(1, 83, 0)

_WORKSPACE_SEARCH_DEPTH = 15


def query_rustc_version(toolchain: str | None = None) -> Version:
    """Version of ``rustc``, of the given toolchain or the active one."""
    argv = ["rustc"]
    if toolchain:
        argv.append(f"+{toolchain}")
    argv.append("--version")
    try:
        result = run_command(argv)
    except CommandExecError as e:
        raise QueryRustcVersionError(f"could not query rustc version: {e}") from e
    try:
        return Version.parse_rustc_version(result.stdout)
    except ValueError as e:
        raise QueryRustcVersionError(f"could not query rustc version: {e}") from e


def replace_cargo_lock_manifest_version(
    lockfile: Path, from_version: str, to_version: str
) -> None:
    """Rewrite the ``version = N`` header line of a Cargo.lock in place."""
    logger.warning(
        "Replacing manifest version 'version = %s' with 'version = %s' in: %s",
        from_version, to_version, lockfile,
    )
    try:
        old_contents = lockfile.read_text(encoding="utf-8")
    except OSError as e:
        raise ReadLockfileError(lockfile, e) from e

    new_contents = old_contents.replace(
        f"\nversion = {from_version}\n", f"\nversion = {to_version}\n"
    )
    try:
        lockfile.write_text(new_contents, encoding="utf-8")
    except OSError as e:
        raise RewriteLockfileError(lockfile, e) from e


def handle_conflicting_cargo_lock_v4(folder: Path, force_v4_to_v3: bool) -> bool:
    """Check ``folder/Cargo.lock``; downgrade v4 to v3 if allowed.

    Only the third line is inspected.

    Returns:
        True if the file was rewritten.

    Raises:
        ConflictingVersionsError: v4 lockfile and ``force_v4_to_v3`` unset.
    """
    lockfile = folder / "Cargo.lock"
    try:
        contents = lockfile.read_text(encoding="utf-8")
    except OSError as e:
        raise ReadLockfileError(lockfile, e) from e

    lines = contents.splitlines()
    if len(lines) < 3:
        raise TooFewLinesInLockfileError(lockfile)
    third_line = lines[2]

    if "version = 4" in third_line:
        if not force_v4_to_v3:
            raise ConflictingVersionsError(lockfile)
        replace_cargo_lock_manifest_version(lockfile, "4", "3")
        return True
    if "version = 3" in third_line:
        return False
    raise UnrecognizedLockfileVersionError(lockfile, third_line)


def get_workspace_root(shader_crate: Path) -> Path | None:
    """Nearest ancestor with a Cargo.lock, for crates inheriting from a workspace."""
    cargo_toml = shader_crate / "Cargo.toml"
    try:
        manifest = cargo_toml.read_text(encoding="utf-8")
    except OSError as e:
        raise ReadLockfileError(cargo_toml, e) from e
    if "workspace = true" not in manifest:
        return None

    current = shader_crate
    for _ in range(_WORKSPACE_SEARCH_DEPTH):
        parent = current.parent
        if parent == current:
            break
        if (parent / "Cargo.lock").exists():
            return parent
        current = parent
    return None


class LockfileMismatchHandler:
    """Owns the lockfiles rewritten for the duration of one build."""

    def __init__(self, changed: list[Path] | None = None) -> None:
        self.cargo_lock_files_with_changed_manifest_versions: list[Path] = list(changed or [])
        self._closed = False

    @classmethod
    def new(
        cls,
        shader_crate: Path,
        toolchain_channel: str,
        force_overwrite_lockfiles_v4_to_v3: bool,
    ) -> LockfileMismatchHandler:
        """Detect and fix conflicts in both directions.

        If the second check fails after the first rewrote a file, that
        file is restored before the error propagates.
        """
        handler = cls()
        try:
            handler._check_workspace_rust(shader_crate, force_overwrite_lockfiles_v4_to_v3)
            handler._check_shader_rust(
                shader_crate, toolchain_channel, force_overwrite_lockfiles_v4_to_v3
            )
        except BaseException:
            handler.abort()
            raise
        return handler

    def _check_workspace_rust(self, shader_crate: Path, force: bool) -> None:
        logger.debug("Ensuring no v3/v4 `Cargo.lock` conflicts from workspace Rust...")
        workspace_rust = query_rustc_version()
        if workspace_rust >= RUST_VERSION_THAT_USES_V4_CARGO_LOCKS:
            logger.debug("user's Rust is v%s, so no v3/v4 conflicts possible.", workspace_rust)
            return

        if not (shader_crate / "Cargo.lock").exists():
            return
        if handle_conflicting_cargo_lock_v4(shader_crate, force):
            self.cargo_lock_files_with_changed_manifest_versions.append(
                shader_crate / "Cargo.lock"
            )

    def _check_shader_rust(self, shader_crate: Path, channel: str, force: bool) -> None:
        logger.debug("Ensuring no v3/v4 `Cargo.lock` conflicts from shader's Rust...")
        shader_rust = query_rustc_version(channel)
        if shader_rust >= RUST_VERSION_THAT_USES_V4_CARGO_LOCKS:
            logger.debug("shader's Rust is v%s, so no v3/v4 conflicts possible.", shader_rust)
            return

        logger.debug(
            "shader's Rust is v%s, so checking both shader and workspace "
            "`Cargo.lock` manifest versions...",
            shader_rust,
        )
        # A v3 shader lockfile is what the pinned toolchain wants: not reverted
        if (shader_crate / "Cargo.lock").exists():
            handle_conflicting_cargo_lock_v4(shader_crate, force)

        workspace_root = get_workspace_root(shader_crate)
        if workspace_root is not None:
            if handle_conflicting_cargo_lock_v4(workspace_root, force):
                self.cargo_lock_files_with_changed_manifest_versions.append(
                    workspace_root / "Cargo.lock"
                )

    # ── Teardown ────────────────────────────────────────────────

    def revert_cargo_lock_manifest_versions(self) -> list[LockfileError]:
        """Restore every recorded lockfile to v4.  Returns the failures."""
        errors: list[LockfileError] = []
        for lockfile in self.cargo_lock_files_with_changed_manifest_versions:
            logger.debug("Reverting: %s", lockfile)
            try:
                replace_cargo_lock_manifest_version(lockfile, "3", "4")
            except LockfileError as e:
                errors.append(e)
        return errors

    def finish(self) -> None:
        """Revert recorded lockfiles, raising the first failure."""
        if self._closed:
            return
        self._closed = True
        errors = self.revert_cargo_lock_manifest_versions()
        if errors:
            for extra in errors[1:]:
                logger.error("could not revert shader `Cargo.lock` file (%s)", extra)
            raise errors[0]

    def abort(self) -> None:
        """Revert recorded lockfiles, logging any failure."""
        if self._closed:
            return
        self._closed = True
        for error in self.revert_cargo_lock_manifest_versions():
            logger.error(
                "could not revert some or all of the shader `Cargo.lock` files (%s)", error
            )

    def __enter__(self) -> LockfileMismatchHandler:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.abort()

    def __del__(self) -> None:
        # Only reached when neither finish() nor abort() ran
        if not getattr(self, "_closed", True):
            self.abort()
