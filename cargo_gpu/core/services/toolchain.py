"""
Toolchain installer — make sure rustup has the channel rust-gpu needs.

Installs the toolchain and its required components when missing, each
step gated by a consent callback.  Nothing is ever uninstalled.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from cargo_gpu.adapters.shell.command import run_command

logger = logging.getLogger(__name__)

REQUIRED_TOOLCHAIN_COMPONENTS = ("rust-src", "rustc-dev", "llvm-tools")


def _approve(channel: str) -> None:
    return None


@dataclass(frozen=True)
class HaltToolchainInstallation:
    """Consent hooks run right before an install.

    A hook refuses by raising; the exception propagates out of
    ``ensure_toolchain_installation`` before anything is installed.
    """

    on_toolchain_install: Callable[[str], None]
    on_components_install: Callable[[str], None]

    @classmethod
    def noop(cls) -> HaltToolchainInstallation:
        """Hooks that always approve, silently."""
        return cls(on_toolchain_install=_approve, on_components_install=_approve)


def ensure_toolchain_installation(channel: str, halt: HaltToolchainInstallation) -> None:
    """Install ``channel`` and the required components if missing."""
    if is_toolchain_installed(channel):
        logger.debug("toolchain %s is already installed", channel)
    else:
        logger.debug("toolchain %s is not installed yet", channel)
        halt.on_toolchain_install(channel)
        install_toolchain(channel)

    if all_required_toolchain_components_installed(channel):
        logger.debug("all required components of toolchain %s are installed", channel)
    else:
        logger.debug(
            "not all required components of toolchain %s are installed yet", channel
        )
        halt.on_components_install(channel)
        install_required_toolchain_components(channel)


def is_toolchain_installed(channel: str) -> bool:
    result = run_command(["rustup", "toolchain", "list"])
    return any(tc.startswith(channel) for tc in result.stdout.split())


def install_toolchain(channel: str) -> None:
    run_command(["rustup", "toolchain", "add", channel], capture_output=False)


def components_installed_in(component_list: str) -> bool:
    """True if every required component is marked ``(installed)``."""
    lines = component_list.splitlines()
    return all(
        any(line.startswith(comp) and line.endswith("(installed)") for line in lines)
        for comp in REQUIRED_TOOLCHAIN_COMPONENTS
    )


def all_required_toolchain_components_installed(channel: str) -> bool:
    result = run_command(["rustup", "component", "list", "--toolchain", channel])
    return components_installed_in(result.stdout)


def install_required_toolchain_components(channel: str) -> None:
    run_command(
        ["rustup", "component", "add", "--toolchain", channel, *REQUIRED_TOOLCHAIN_COMPONENTS],
        capture_output=False,
    )
