"""
Settings models — the typed configuration of ``install`` and ``build``.

Field defaults double as the default layer of the config merge: a
value coming from Cargo.toml or the CLI only overrides when it differs
from the default here.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field


class InstallConfig(BaseModel):
    """How to obtain the codegen backend."""

    model_config = ConfigDict(extra="forbid")

    shader_crate: Path = Path("./")
    spirv_builder_source: str | None = None
    spirv_builder_version: str | None = None
    rebuild_codegen: bool = False
    clear_target: bool = True
    auto_install_rust_toolchain: bool = False
    force_overwrite_lockfiles_v4_to_v3: bool = False


class BuildConfig(BaseModel):
    """How to compile the shader crate."""

    model_config = ConfigDict(extra="forbid")

    output_dir: Path = Path("./")
    shader_target: str = "spirv-unknown-vulkan1.2"
    release: bool = True
    features: list[str] = Field(default_factory=list)
    no_default_features: bool = False
    deny_warnings: bool = False
    multimodule: bool = False
    spirv_metadata: str = "None"
    capabilities: list[str] = Field(default_factory=list)
    extensions: list[str] = Field(default_factory=list)
    relax_struct_store: bool = False
    relax_logical_pointer: bool = False
    relax_block_layout: bool = False
    uniform_buffer_standard_layout: bool = False
    scalar_block_layout: bool = False
    skip_block_layout: bool = False
    preserve_bindings: bool = False
    manifest_file: str = "manifest.json"
    watch: bool = False


class CargoGpuConfig(BaseModel):
    """Root of the merged configuration."""

    model_config = ConfigDict(extra="forbid")

    install: InstallConfig = Field(default_factory=InstallConfig)
    build: BuildConfig = Field(default_factory=BuildConfig)
