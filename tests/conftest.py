"""
Shared test fixtures and configuration.

External programs (cargo, rustup, rustc) are never run: ``fake_run``
replaces ``subprocess.run`` behind the command adapter with a scripted
dispatcher.
"""

import json
import logging
import subprocess
from pathlib import Path
from typing import Callable

import pytest

CRATES_IO = "registry+https://github.com/rust-lang/crates.io-index"


class FakeProcesses:
    """Scripted stand-in for ``subprocess.run``.

    Handlers match on an argv prefix; the most recently registered
    match wins.  Unmatched commands behave like a missing executable.
    """

    def __init__(self) -> None:
        self.calls: list[dict] = []
        self._handlers: list[tuple[tuple[str, ...], Callable | str, int]] = []

    def on(self, *prefix: str, stdout: "Callable | str" = "", returncode: int = 0) -> None:
        """Register a response for commands starting with ``prefix``.

        ``stdout`` may be a callable ``(argv, cwd) -> str | None``; it
        runs when the command is invoked and can touch the filesystem.
        """
        self._handlers.append((prefix, stdout, returncode))

    def argvs(self) -> list[list[str]]:
        return [c["argv"] for c in self.calls]

    def ran(self, *prefix: str) -> bool:
        return any(tuple(argv[: len(prefix)]) == prefix for argv in self.argvs())

    def __call__(self, argv, cwd=None, env=None, capture_output=False, text=False, input=None):
        argv = list(argv)
        self.calls.append(
            {"argv": argv, "cwd": cwd, "capture_output": capture_output, "input": input}
        )
        for prefix, stdout, returncode in reversed(self._handlers):
            if tuple(argv[: len(prefix)]) != prefix:
                continue
            out = stdout(argv, cwd) if callable(stdout) else stdout
            return subprocess.CompletedProcess(
                argv,
                returncode,
                stdout=(out or "") if capture_output else None,
                stderr="boom" if capture_output and returncode else ("" if capture_output else None),
            )
        raise FileNotFoundError(f"No such file or directory: '{argv[0]}'")


@pytest.fixture(autouse=True)
def _restore_root_logger():
    """CLI invocations reconfigure the root logger; undo that per test."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def fake_run(monkeypatch: pytest.MonkeyPatch) -> FakeProcesses:
    """Replace every subprocess started through the command adapter."""
    fake = FakeProcesses()
    monkeypatch.setattr("cargo_gpu.adapters.shell.command.subprocess.run", fake)
    return fake


def package_json(
    name: str,
    version: str,
    manifest_path: Path,
    source: str | None = None,
    metadata: dict | None = None,
) -> dict:
    return {
        "name": name,
        "version": version,
        "manifest_path": str(manifest_path),
        "source": source,
        "metadata": metadata,
    }


def metadata_json(
    packages: list[dict],
    workspace_root: Path,
    workspace_metadata: dict | None = None,
) -> str:
    """A minimal ``cargo metadata --format-version 1`` document."""
    return json.dumps(
        {
            "packages": packages,
            "workspace_root": str(workspace_root),
            "workspace_metadata": workspace_metadata,
            "target_directory": str(workspace_root / "target"),
            "version": 1,
        }
    )


def write_crate(path: Path, name: str = "shader", extra: str = "") -> Path:
    """Create a crate directory with a Cargo.toml and src/lib.rs."""
    (path / "src").mkdir(parents=True, exist_ok=True)
    (path / "src" / "lib.rs").write_text("")
    (path / "Cargo.toml").write_text(
        f'[package]\nname = "{name}"\nversion = "0.1.0"\nedition = "2021"\n{extra}'
    )
    return path


def write_backend_checkout(path: Path, channel: str = "nightly-2024-04-24") -> Path:
    """A downloaded ``rustc_codegen_spirv`` with its channel-pinning build.rs."""
    path.mkdir(parents=True, exist_ok=True)
    (path / "Cargo.toml").write_text('[package]\nname = "rustc_codegen_spirv"\n')
    (path / "build.rs").write_text(
        "/// Required toolchain\n"
        "static REQUIRED_RUST_TOOLCHAIN: &str = r#\"\n"
        "[toolchain]\n"
        f'channel = "{channel}"\n'
        'components = ["rust-src", "rustc-dev", "llvm-tools"]\n'
        "\"#;\n"
    )
    return path


def lockfile_text(version: int) -> str:
    return (
        "# This file is automatically @generated by Cargo.\n"
        "# It is not intended for manual editing.\n"
        f"version = {version}\n"
        "\n"
        "[[package]]\n"
        'name = "shader"\n'
        'version = "0.1.0"\n'
    )


@pytest.fixture
def shader_crate(tmp_path: Path) -> Path:
    """An empty shader crate."""
    return write_crate(tmp_path / "shader")


@pytest.fixture
def cache_dir(tmp_path: Path) -> Path:
    return tmp_path / "cache"
