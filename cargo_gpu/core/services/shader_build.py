"""
Shader build — compile a shader crate with the installed backend.

The compile step itself is done by an external builder; this module
installs the backend, guards lockfiles, runs the builder, copies the
``.spv`` modules into the output directory and writes the manifest.
"""

from __future__ import annotations

import json
import logging
import os
import shutil
from pathlib import Path
from typing import Protocol

from pydantic import ValidationError

from cargo_gpu.adapters.shell.command import CommandExecError, run_command
from cargo_gpu.core.errors import CargoGpuError, ShaderBuildError
from cargo_gpu.core.models.builder import CompileResult, SpirvBuilderConfig
from cargo_gpu.core.models.linkage import Linkage
from cargo_gpu.core.models.settings import CargoGpuConfig
from cargo_gpu.core.services.backend_install import SpirvCodegenBackendInstaller
from cargo_gpu.core.services.lockfile import LockfileMismatchHandler
from cargo_gpu.core.services.toolchain import HaltToolchainInstallation
from cargo_gpu.core.services.watcher import ShaderWatcher
from cargo_gpu.ui.output import user_output

logger = logging.getLogger(__name__)

DEFAULT_BUILDER_COMMAND = "spirv-builder-cli"


class ShaderBuilder(Protocol):
    """Anything that compiles a configured shader crate to SPIR-V."""

    def build(self, config: SpirvBuilderConfig) -> CompileResult: ...


class ExternalShaderBuilder:
    """Runs a builder executable: JSON config on stdin, JSON result on stdout."""

    def __init__(self, command: str = DEFAULT_BUILDER_COMMAND) -> None:
        self.command = command

    def build(self, config: SpirvBuilderConfig) -> CompileResult:
        try:
            result = run_command(
                [self.command, "build"], input_text=config.model_dump_json()
            )
        except CommandExecError as e:
            raise ShaderBuildError(f"shader builder `{self.command}` failed: {e}") from e
        try:
            return CompileResult.model_validate_json(result.stdout)
        except ValidationError as e:
            raise ShaderBuildError(
                f"shader builder `{self.command}` returned invalid output: {e}"
            ) from e


def _relative_to_crate(path: Path, shader_crate: Path) -> Path:
    try:
        return Path(os.path.relpath(path, shader_crate))
    except ValueError:
        # Different drive on Windows
        return path


def write_manifest(linkage: list[Linkage], manifest_path: Path) -> None:
    """Write the sorted linkage list as pretty JSON."""
    ordered = sorted(linkage, key=Linkage.sort_key)
    payload = [entry.model_dump() for entry in ordered]
    try:
        manifest_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    except OSError as e:
        raise ShaderBuildError(
            f"could not write shader manifest file '{manifest_path}': {e}"
        ) from e
    logger.info("wrote manifest to '%s'", manifest_path)


class CargoGpuBuild:
    """``cargo gpu build``: install the backend, then compile the shaders."""

    def __init__(
        self,
        config: CargoGpuConfig,
        *,
        cache_dir: Path,
        builder: ShaderBuilder | None = None,
        halt: HaltToolchainInstallation | None = None,
    ) -> None:
        self.config = config
        self.cache_dir = cache_dir
        self.builder = builder or ExternalShaderBuilder()
        self.halt = halt
        # Files and directories written by builds; never watched
        self.outputs: set[Path] = set()

    def builder_config(self) -> SpirvBuilderConfig:
        build = self.config.build
        return SpirvBuilderConfig(
            path_to_crate=self.config.install.shader_crate,
            target=build.shader_target,
            release=build.release,
            features=build.features,
            no_default_features=build.no_default_features,
            deny_warnings=build.deny_warnings,
            multimodule=build.multimodule,
            spirv_metadata=build.spirv_metadata,
            capabilities=build.capabilities,
            extensions=build.extensions,
            relax_struct_store=build.relax_struct_store,
            relax_logical_pointer=build.relax_logical_pointer,
            relax_block_layout=build.relax_block_layout,
            uniform_buffer_standard_layout=build.uniform_buffer_standard_layout,
            scalar_block_layout=build.scalar_block_layout,
            skip_block_layout=build.skip_block_layout,
            preserve_bindings=build.preserve_bindings,
        )

    def run(self, watcher: ShaderWatcher | None = None) -> list[Linkage]:
        """Build once; in watch mode keep rebuilding until the watcher stops.

        Returns:
            Linkage entries of the first build.
        """
        install = self.config.install
        shader_crate = install.shader_crate
        if not shader_crate.exists():
            raise ShaderBuildError(
                f"shader crate '{shader_crate}' does not exist. "
                f"(Current dir is '{Path.cwd()}')"
            )
        shader_crate = shader_crate.resolve()

        installer = SpirvCodegenBackendInstaller(install)
        backend = installer.install(shader_crate, cache_dir=self.cache_dir, halt=self.halt)

        with LockfileMismatchHandler.new(
            shader_crate,
            backend.toolchain_channel,
            install.force_overwrite_lockfiles_v4_to_v3,
        ) as lockfile_handler:
            config = backend.configure_builder(
                self.builder_config().model_copy(update={"path_to_crate": shader_crate})
            )

            output_dir = self.config.build.output_dir
            logger.debug("ensuring output-dir '%s' exists", output_dir)
            try:
                output_dir.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise ShaderBuildError(
                    f"could not create output dir '{output_dir}': {e}"
                ) from e
            output_dir = output_dir.resolve()

            user_output(f"Compiling shaders at {shader_crate}...")
            linkage = self.build_once(config, shader_crate, output_dir)

            if self.config.build.watch:
                self.watch(config, shader_crate, output_dir, watcher)

            lockfile_handler.finish()
        return linkage

    def build_once(
        self, config: SpirvBuilderConfig, shader_crate: Path, output_dir: Path
    ) -> list[Linkage]:
        """Run the builder, copy the modules and write the manifest."""
        result = self.builder.build(config)
        shaders = result.shaders()
        if not shaders:
            raise ShaderBuildError("No shader modules to compile")

        if output_dir != shader_crate:
            self.outputs.add(output_dir)
        manifest_path = output_dir / self.config.build.manifest_file
        self.outputs.add(manifest_path)

        linkage = []
        for entry, filepath in shaders:
            dest = output_dir / filepath.name
            self.outputs.add(dest)
            logger.debug("copying %s to %s", filepath, dest)
            try:
                shutil.copyfile(filepath, dest)
            except OSError as e:
                raise ShaderBuildError(f"could not copy {filepath} to {dest}: {e}") from e
            linkage.append(Linkage.new(entry, _relative_to_crate(dest, shader_crate)))

        write_manifest(linkage, manifest_path)
        return sorted(linkage, key=Linkage.sort_key)

    def watch(
        self,
        config: SpirvBuilderConfig,
        shader_crate: Path,
        output_dir: Path,
        watcher: ShaderWatcher | None = None,
    ) -> None:
        """Rebuild on every change event until the watcher is stopped.

        Build errors are logged; they never end the loop.  Build outputs
        inside the crate are excluded from watching.
        """
        watcher = watcher or ShaderWatcher(shader_crate)
        watcher.exclude = self.outputs
        if not watcher.started:
            watcher.start()
        user_output(f"Watching {shader_crate} for changes...")

        while True:
            event = watcher.events.get()
            if event is None:
                logger.debug("watcher stopped")
                return
            logger.info("rebuilding after change at %s", event.path)
            try:
                self.build_once(config, shader_crate, output_dir)
            except CargoGpuError as e:
                logger.error("shader build failed: %s", e)
