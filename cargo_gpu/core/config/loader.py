"""
Configuration loader — merge defaults, Cargo.toml metadata and CLI flags.

Layers, lowest to highest precedence:

    1. defaults                        (the pydantic field defaults)
    2. [workspace.metadata.rust-gpu]   (workspace Cargo.toml)
    3. [package.metadata.rust-gpu]     (shader crate Cargo.toml)
    4. command-line flags

Each layer holds ``install`` and ``build`` tables, e.g.::

    [package.metadata.rust-gpu.build]
    output-dir = "shaders"
    capabilities = ["AtomicStorage"]

A layer's value only replaces the lower one when it differs from the
default.  Consequently a flag can never force a setting back to its
default value once Cargo.toml changed it.
"""

from __future__ import annotations

import copy
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from cargo_gpu.adapters.cargo.metadata import Metadata, query_metadata
from cargo_gpu.core.errors import CargoGpuError
from cargo_gpu.core.models.settings import CargoGpuConfig

logger = logging.getLogger(__name__)

METADATA_KEY = "rust-gpu"


class ConfigError(CargoGpuError):
    """Raised when merged configuration is invalid."""


def keys_to_snake_case(value: Any) -> Any:
    """Recursively convert mapping keys from ``a-b`` to ``a_b``."""
    if isinstance(value, dict):
        return {str(k).replace("-", "_"): keys_to_snake_case(v) for k, v in value.items()}
    if isinstance(value, list):
        return [keys_to_snake_case(v) for v in value]
    return value


def merge_non_default(
    value: dict[str, Any],
    patch: dict[str, Any],
    defaults: dict[str, Any],
    _pointer: str = "",
) -> dict[str, Any]:
    """Return ``value`` updated with every ``patch`` leaf that is not a default.

    Keys absent from ``defaults`` are unknown settings and are skipped.
    """
    merged = copy.deepcopy(value)
    for key, new in patch.items():
        pointer = f"{_pointer}/{key}"
        if key not in defaults:
            logger.warning("ignoring unknown rust-gpu setting `%s`", pointer)
            continue
        default = defaults[key]
        if isinstance(default, dict) and isinstance(new, dict):
            merged[key] = merge_non_default(merged.get(key, {}), new, default, pointer)
        elif new != default:
            merged[key] = new
    return merged


def _normalize_layer(raw: Any, base_dir: Path) -> dict[str, Any]:
    """Snake-case a ``rust-gpu`` table and apply its special keys."""
    if not raw:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError(f"`{METADATA_KEY}` metadata must be a table, got {raw!r}")

    layer = keys_to_snake_case(raw)
    build = layer.get("build")
    if isinstance(build, dict):
        if "debug" in build:
            build["release"] = not bool(build.pop("debug"))
        output_dir = build.get("output_dir")
        if isinstance(output_dir, str) and not Path(output_dir).is_absolute():
            build["output_dir"] = str(base_dir / output_dir)
    return layer


def _defaults() -> dict[str, Any]:
    return CargoGpuConfig().model_dump(mode="json")


def merge_layers(*layers: dict[str, Any]) -> CargoGpuConfig:
    """Fold layers over the defaults and validate the result."""
    defaults = _defaults()
    merged = copy.deepcopy(defaults)
    for layer in layers:
        merged = merge_non_default(merged, layer, defaults)
    try:
        return CargoGpuConfig.model_validate(merged)
    except ValidationError as e:
        raise ConfigError(f"Invalid rust-gpu configuration: {e}") from e


def workspace_layer(metadata: Metadata) -> dict[str, Any]:
    raw = (metadata.workspace_metadata or {}).get(METADATA_KEY)
    logger.debug("found workspace metadata: %r", raw)
    return _normalize_layer(raw, metadata.workspace_root)


def crate_layer(metadata: Metadata, shader_crate: Path) -> dict[str, Any]:
    package = metadata.find_package_by_manifest_dir(shader_crate)
    if package is None:
        return {}
    raw = (package.metadata or {}).get(METADATA_KEY)
    logger.debug("found crate metadata: %r", raw)
    return _normalize_layer(raw, package.manifest_dir)


def load_config(
    shader_crate: Path,
    cli_overrides: dict[str, Any] | None = None,
) -> CargoGpuConfig:
    """Load the merged configuration for ``shader_crate``.

    Args:
        shader_crate: Shader crate directory; its cargo metadata is queried.
        cli_overrides: ``{"install": {...}, "build": {...}}`` from the CLI.

    Raises:
        ConfigError: A merged value failed validation.
    """
    metadata = query_metadata(shader_crate)
    cli_layer = keys_to_snake_case(cli_overrides or {})
    config = merge_layers(
        workspace_layer(metadata),
        crate_layer(metadata, shader_crate),
        cli_layer,
    )
    logger.debug("final merged configuration: %r", config)
    return config
