"""
cargo-gpu — CLI entrypoint.

Usage:
    cargo gpu install --shader-crate shaders/
    cargo gpu build --shader-crate shaders/ --output-dir assets/
    cargo gpu show cache-directory

Installed as the ``cargo-gpu`` console script, so cargo runs it for
``cargo gpu ...`` and passes ``gpu`` as the first argument.
"""

from __future__ import annotations

import functools
import logging
import os
import sys
from pathlib import Path
from typing import Any, Callable

import click

from cargo_gpu import __version__
from cargo_gpu.core.errors import CargoGpuError
from cargo_gpu.core.observability.logging_config import (
    LOG_FILE_ENV,
    LOG_FILE_LEVEL_ENV,
    resolve_level,
    setup_logging,
)
from cargo_gpu.ui.cli.show import show
from cargo_gpu.ui.output import user_output

logger = logging.getLogger(__name__)


@click.group()
@click.version_option(version=__version__, prog_name="cargo-gpu")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Only log errors.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--cache-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Cache directory (default: $CARGO_GPU_CACHE_DIR or the OS cache dir).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    cache_dir: Path | None,
) -> None:
    """cargo-gpu — build rust-gpu shader crates with a pinned codegen backend."""
    ctx.ensure_object(dict)
    ctx.obj["cache_dir"] = cache_dir

    # ── Logging setup (once, at process start) ──────────────────
    setup_logging(
        level=resolve_level(debug=debug, verbose=verbose, quiet=quiet),
        log_file=os.environ.get(LOG_FILE_ENV),
        log_file_level=os.environ.get(LOG_FILE_LEVEL_ENV),
    )


# ── Shared options ──────────────────────────────────────────────


def install_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Options common to ``install`` and ``build``."""
    options = [
        click.option(
            "--shader-crate",
            type=click.Path(file_okay=False, path_type=Path),
            default=Path("./"),
            show_default=True,
            help="Directory containing the shader crate to compile.",
        ),
        click.option(
            "--spirv-builder-source",
            default=None,
            help="Git repository of rust-gpu, e.g. https://github.com/Rust-GPU/rust-gpu.",
        ),
        click.option(
            "--spirv-builder-version",
            default=None,
            help=(
                "crates.io version of rust-gpu, or a git revision when "
                "--spirv-builder-source is set."
            ),
        ),
        click.option("--rebuild-codegen", is_flag=True, help="Force `rustc_codegen_spirv` to be rebuilt."),
        click.option(
            "--no-clear-target",
            "no_clear_target",
            is_flag=True,
            help="Keep the target dir of the `rustc_codegen_spirv` build (about 200MiB).",
        ),
        click.option(
            "--auto-install-rust-toolchain",
            is_flag=True,
            help="Install the required Rust toolchain without asking.",
        ),
        click.option(
            "--force-overwrite-lockfiles-v4-to-v3",
            is_flag=True,
            help=(
                "Temporarily rewrite v4 Cargo.lock files to v3 when the shader "
                "toolchain is older than Rust 1.83.0, restoring them afterwards."
            ),
        ),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _install_overrides(kwargs: dict[str, Any]) -> dict[str, Any]:
    return {
        "shader_crate": str(kwargs["shader_crate"]),
        "spirv_builder_source": kwargs["spirv_builder_source"],
        "spirv_builder_version": kwargs["spirv_builder_version"],
        "rebuild_codegen": kwargs["rebuild_codegen"],
        "clear_target": not kwargs["no_clear_target"],
        "auto_install_rust_toolchain": kwargs["auto_install_rust_toolchain"],
        "force_overwrite_lockfiles_v4_to_v3": kwargs["force_overwrite_lockfiles_v4_to_v3"],
    }


def handle_errors(func: Callable[..., Any]) -> Callable[..., Any]:
    """Log the full error chain, print one line, exit 1."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except CargoGpuError as e:
            logger.debug("command failed", exc_info=True)
            cause = e.__cause__
            while cause is not None:
                logger.error("caused by: %s", cause)
                cause = cause.__cause__
            click.secho(f"❌ Error: {e}", fg="red", err=True)
            sys.exit(1)

    return wrapper


# ── Commands ────────────────────────────────────────────────────


@cli.command()
@install_options
@click.pass_context
@handle_errors
def install(ctx: click.Context, **kwargs: Any) -> None:
    """Install rust-gpu compiler artifacts."""
    from cargo_gpu.core.cache import resolve_cache_dir
    from cargo_gpu.core.config.loader import load_config
    from cargo_gpu.core.services.backend_install import SpirvCodegenBackendInstaller
    from cargo_gpu.core.services.user_consent import ask_for_user_consent

    config = load_config(kwargs["shader_crate"], {"install": _install_overrides(kwargs)})
    logger.debug("installing with final merged arguments: %r", config.install)

    halt = ask_for_user_consent(config.install.auto_install_rust_toolchain)
    backend = SpirvCodegenBackendInstaller(config.install).install(
        config.install.shader_crate,
        cache_dir=resolve_cache_dir(ctx.obj.get("cache_dir")),
        halt=halt,
    )
    user_output(f"Backend ready at {backend.rustc_codegen_spirv_location}")
    click.echo(f"   toolchain: {backend.toolchain_channel}")
    click.echo(f"   target specs: {backend.target_spec_dir}")


@cli.command()
@install_options
@click.option(
    "--output-dir",
    "-o",
    type=click.Path(file_okay=False, path_type=Path),
    default=Path("./"),
    show_default=True,
    help="Directory to write the compiled .spv files and manifest into.",
)
@click.option(
    "--shader-target",
    default="spirv-unknown-vulkan1.2",
    show_default=True,
    help="SPIR-V target to compile for (see `cargo gpu show targets`).",
)
@click.option(
    "--debug-build/--release",
    "debug_build",
    default=False,
    help="Compile in debug or release mode (default: release).",
)
@click.option("--features", multiple=True, help="Cargo features to enable (repeatable).")
@click.option("--no-default-features", is_flag=True, help="Disable default Cargo features.")
@click.option("--deny-warnings", is_flag=True, help="Treat warnings as errors.")
@click.option("--multimodule", is_flag=True, help="Emit one SPIR-V module per entry point.")
@click.option("--capabilities", multiple=True, help="Enable a SPIR-V capability (repeatable).")
@click.option("--extensions", multiple=True, help="Enable a SPIR-V extension (repeatable).")
@click.option(
    "--manifest-file",
    default="manifest.json",
    show_default=True,
    help="Name of the manifest file written into the output dir.",
)
@click.option("--watch", "-w", is_flag=True, help="Rebuild whenever the shader crate changes.")
@click.option(
    "--builder",
    "builder_command",
    default=None,
    help="External shader builder executable (default: spirv-builder-cli).",
)
@click.pass_context
@handle_errors
def build(ctx: click.Context, **kwargs: Any) -> None:
    """Compile a shader crate to SPIR-V."""
    from cargo_gpu.core.cache import resolve_cache_dir
    from cargo_gpu.core.config.loader import load_config
    from cargo_gpu.core.services.shader_build import CargoGpuBuild, ExternalShaderBuilder
    from cargo_gpu.core.services.user_consent import ask_for_user_consent

    overrides = {
        "install": _install_overrides(kwargs),
        "build": {
            "output_dir": str(kwargs["output_dir"]),
            "shader_target": kwargs["shader_target"],
            "release": not kwargs["debug_build"],
            "features": list(kwargs["features"]),
            "no_default_features": kwargs["no_default_features"],
            "deny_warnings": kwargs["deny_warnings"],
            "multimodule": kwargs["multimodule"],
            "capabilities": list(kwargs["capabilities"]),
            "extensions": list(kwargs["extensions"]),
            "manifest_file": kwargs["manifest_file"],
            "watch": kwargs["watch"],
        },
    }
    config = load_config(kwargs["shader_crate"], overrides)
    logger.debug("building with final merged arguments: %r", config)

    builder = (
        ExternalShaderBuilder(kwargs["builder_command"])
        if kwargs["builder_command"]
        else ExternalShaderBuilder()
    )
    CargoGpuBuild(
        config,
        cache_dir=resolve_cache_dir(ctx.obj.get("cache_dir")),
        builder=builder,
        halt=ask_for_user_consent(config.install.auto_install_rust_toolchain),
    ).run()


cli.add_command(show)


def main(argv: list[str] | None = None) -> None:
    """Console-script entry; drops the ``gpu`` argument cargo passes."""
    args = list(sys.argv[1:] if argv is None else argv)
    if args and args[0] == "gpu":
        args = args[1:]
    cli.main(args=args, prog_name="cargo-gpu")


if __name__ == "__main__":
    main()
