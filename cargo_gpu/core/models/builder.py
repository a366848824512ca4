"""
Shader builder models — what the external SPIR-V builder is given
and what it reports back.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field


class SpirvBuilderConfig(BaseModel):
    """Everything the external builder needs to compile one shader crate.

    The three backend fields are filled in by
    ``SpirvCodegenBackend.configure_builder``.
    """

    path_to_crate: Path
    target: str | None = None
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

    rustc_codegen_spirv_location: Path | None = None
    toolchain_overwrite: str | None = None
    path_to_target_spec: Path | None = None


class CompileResult(BaseModel):
    """Output of one builder run.

    ``module`` is a single ``.spv`` path shared by every entry point,
    or (multimodule) a map of entry point → ``.spv`` path.
    """

    entry_points: list[str] = Field(default_factory=list)
    module: Path | dict[str, Path]

    def shaders(self) -> list[tuple[str, Path]]:
        """(entry point, module path) pairs."""
        if isinstance(self.module, dict):
            return list(self.module.items())
        return [(entry, self.module) for entry in self.entry_points]
