"""
Linkage — one entry of the shader manifest written after a build.

The manifest maps each entry point to its ``.spv`` file so build
scripts can generate bindings or post-process the modules.
"""

from __future__ import annotations

from pathlib import PurePath

from pydantic import BaseModel


class Linkage(BaseModel):
    """Shader source and entry point of one compiled shader."""

    source_path: str
    entry_point: str
    wgsl_entry_point: str

    @classmethod
    def new(cls, entry_point: str, source_path: PurePath | str) -> Linkage:
        # Forward slashes on every OS
        return cls(
            source_path=PurePath(source_path).as_posix(),
            entry_point=entry_point,
            wgsl_entry_point=entry_point.replace("::", ""),
        )

    def sort_key(self) -> tuple[str, str, str]:
        return (self.source_path, self.entry_point, self.wgsl_entry_point)
