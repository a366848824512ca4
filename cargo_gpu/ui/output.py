"""
User output — the one place progress messages are printed.

Messages get a crab prefix.  Machine-readable output (``show``) uses
plain ``click.echo`` instead so scripts can consume it.
"""

from __future__ import annotations

import click

_PREFIX = "🦀 "


def user_output(message: str) -> None:
    click.echo(f"{_PREFIX}{message}")
