"""
CLI commands for ``cargo gpu show``.

Output here is plain (no crab prefix) so scripts can consume it.
"""

from __future__ import annotations

import sys
from pathlib import Path

import click

from cargo_gpu.core.errors import CargoGpuError


def _fail(error: CargoGpuError) -> None:
    click.secho(f"❌ {error}", fg="red", err=True)
    sys.exit(1)


@click.group()
def show() -> None:
    """Show some useful values."""


@show.command("cache-directory")
@click.pass_context
def cache_directory(ctx: click.Context) -> None:
    """Displays the location of the cache directory."""
    from cargo_gpu.core.cache import resolve_cache_dir

    try:
        cache_dir = resolve_cache_dir(ctx.obj.get("cache_dir"))
    except CargoGpuError as e:
        _fail(e)
    click.echo(str(cache_dir))


@show.command("spirv-source")
@click.option(
    "--shader-crate",
    type=click.Path(file_okay=False, path_type=Path),
    default=Path("./"),
    show_default=True,
    help="The shader crate to inspect for its spirv-std dependency.",
)
def spirv_source(shader_crate: Path) -> None:
    """The source location of spirv-std."""
    from cargo_gpu.core.services.spirv_source import spirv_source_from_shader

    try:
        source = spirv_source_from_shader(shader_crate)
    except CargoGpuError as e:
        _fail(e)
    click.echo(str(source))


@show.command()
def targets() -> None:
    """All available SPIR-V targets."""
    from cargo_gpu.core.services.target_specs import available_spirv_targets

    for target in available_spirv_targets():
        click.echo(target)
