"""
Shell command adapter — run external programs (rustup, cargo, rustc).

This is the SINGLE PLACE where ``subprocess.run`` is called.  Every
other module goes through ``run_command``.
"""

from __future__ import annotations

import logging
import subprocess
import time
from pathlib import Path
from typing import Mapping, Sequence

from cargo_gpu.core.errors import CargoGpuError

logger = logging.getLogger(__name__)


class CommandExecError(CargoGpuError):
    """A command could not be spawned, or exited unsuccessfully.

    ``kind`` is ``"io"`` when the process never ran and ``"exec_fail"``
    when it exited non-zero.
    """

    def __init__(
        self,
        argv: Sequence[str],
        *,
        kind: str,
        returncode: int | None = None,
        stdout: str = "",
        stderr: str = "",
        reason: object = None,
    ) -> None:
        self.argv = list(argv)
        self.kind = kind
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        cmd = " ".join(self.argv)
        if kind == "io":
            message = f"could not run `{cmd}`: {reason}"
        else:
            message = f"`{cmd}` failed with exit code {returncode}"
            if stderr.strip():
                message += f"\n{stderr.strip()}"
        super().__init__(message)


def run_command(
    argv: Sequence[str],
    *,
    cwd: Path | None = None,
    env: Mapping[str, str] | None = None,
    capture_output: bool = True,
    input_text: str | None = None,
) -> subprocess.CompletedProcess[str]:
    """Run a command and return the completed process.

    Args:
        argv: Program and arguments.  Never run through a shell.
        cwd: Working directory (default: current).
        env: Full environment for the child (default: inherit).
        capture_output: Capture stdout/stderr as text.  When False the
            child writes straight to this process' stdout/stderr.
        input_text: Optional text piped to the child's stdin.

    Raises:
        CommandExecError: Spawning failed or the exit code was non-zero.
    """
    argv = [str(a) for a in argv]
    logger.debug("Executing: %s (cwd=%s)", " ".join(argv), cwd)
    start = time.monotonic()

    try:
        result = subprocess.run(
            argv,
            cwd=str(cwd) if cwd is not None else None,
            env=dict(env) if env is not None else None,
            capture_output=capture_output,
            text=True,
            input=input_text,
        )
    except OSError as e:
        raise CommandExecError(argv, kind="io", reason=e) from e

    elapsed_ms = int((time.monotonic() - start) * 1000)
    if result.returncode != 0:
        logger.debug(
            "Command failed (rc=%d, %dms): %s", result.returncode, elapsed_ms, argv[0]
        )
        raise CommandExecError(
            argv,
            kind="exec_fail",
            returncode=result.returncode,
            stdout=result.stdout or "",
            stderr=result.stderr or "",
        )

    logger.debug("Command ok (%dms): %s", elapsed_ms, argv[0])
    return result
