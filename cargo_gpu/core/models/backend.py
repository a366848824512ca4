"""
Installed backend — the result of a successful (or cached) install.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from cargo_gpu.core.errors import MissingTargetError

if TYPE_CHECKING:
    from cargo_gpu.core.models.builder import SpirvBuilderConfig


@dataclass(frozen=True)
class SpirvCodegenBackend:
    """A usable ``rustc_codegen_spirv`` installation."""

    rustc_codegen_spirv_location: Path
    toolchain_channel: str
    target_spec_dir: Path

    def configure_builder(self, config: SpirvBuilderConfig) -> SpirvBuilderConfig:
        """Return ``config`` pointed at this backend.

        The target must already be set and must not change afterwards,
        since the target spec path is derived from it.
        """
        if not config.target:
            raise MissingTargetError()
        return config.model_copy(
            update={
                "rustc_codegen_spirv_location": self.rustc_codegen_spirv_location,
                "toolchain_overwrite": self.toolchain_channel,
                "path_to_target_spec": self.target_spec_dir / f"{config.target}.json",
            }
        )
