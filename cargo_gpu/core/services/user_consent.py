"""
User consent — ask before rustup installs anything.
"""

from __future__ import annotations

import logging
import sys

import click

from cargo_gpu.core.errors import NoTTYError, UserDeniedError
from cargo_gpu.core.services.toolchain import (
    REQUIRED_TOOLCHAIN_COMPONENTS,
    HaltToolchainInstallation,
)
from cargo_gpu.ui.output import user_output

logger = logging.getLogger(__name__)


def _stdout_is_tty() -> bool:
    return sys.stdout.isatty()


def get_consent_for_toolchain_install(prompt: str, channel: str, skip: bool) -> None:
    """Return if the user agrees (or ``skip``), raise otherwise."""
    if skip:
        return
    if not _stdout_is_tty():
        logger.error("attempted to ask for consent when there's no TTY")
        raise NoTTYError()

    logger.debug("asking for consent to install the required toolchain")
    if not click.confirm(f"🦀 {prompt}", default=False):
        raise UserDeniedError(channel)


def ask_for_user_consent(skip: bool) -> HaltToolchainInstallation:
    """Consent hooks that prompt on the terminal unless ``skip``."""

    def on_toolchain_install(channel: str) -> None:
        message = f"Rust {channel} with `rustup`"
        get_consent_for_toolchain_install(f"Install {message}", channel, skip)
        logger.debug("installing toolchain %s", channel)
        user_output(f"Installing {message}")

    def on_components_install(channel: str) -> None:
        components = ", ".join(REQUIRED_TOOLCHAIN_COMPONENTS)
        message = f"components [{components}] for toolchain {channel} with `rustup`"
        get_consent_for_toolchain_install(f"Install {message}", channel, skip)
        logger.debug("installing required components of toolchain %s", channel)
        user_output(f"Installing {message}")

    return HaltToolchainInstallation(
        on_toolchain_install=on_toolchain_install,
        on_components_install=on_components_install,
    )
