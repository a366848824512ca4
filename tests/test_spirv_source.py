"""
Tests for SPIR-V source resolution and toolchain channel parsing.
"""

from pathlib import Path

import pytest

from conftest import CRATES_IO, metadata_json, package_json, write_backend_checkout

from cargo_gpu.adapters.cargo.metadata import Package
from cargo_gpu.core.errors import (
    AmbiguousSourceError,
    ChannelEndNotFoundError,
    ChannelStartNotFoundError,
    InvalidBuildScriptError,
    InvalidChannelSliceError,
    InvalidManifestPathError,
    InvalidSourceFormatError,
    InvalidVersionError,
    MissingDependencyError,
    QueryMetadataError,
    UnknownSourceError,
)
from cargo_gpu.core.models.source import CratesIOSource, GitSource, PathSource
from cargo_gpu.core.models.version import Version
from cargo_gpu.core.services.spirv_source import (
    parse_spirv_std_source_and_version,
    resolve_spirv_source,
    rust_gpu_toolchain_channel,
)


def _spirv_std(source, version="0.9.0", manifest_path=Path("/x/spirv-std/Cargo.toml")):
    return Package.model_validate(package_json("spirv-std", version, manifest_path, source))


# ═══════════════════════════════════════════════════════════════════
#  Overrides
# ═══════════════════════════════════════════════════════════════════


class TestResolveOverrides:
    def test_source_and_version_make_git(self, shader_crate, fake_run):
        source = resolve_spirv_source(
            shader_crate, "https://github.com/Rust-GPU/rust-gpu", "86fc4803"
        )
        assert source == GitSource(url="https://github.com/Rust-GPU/rust-gpu", rev="86fc4803")
        assert fake_run.calls == []

    def test_version_only_is_crates_io(self, shader_crate, fake_run):
        source = resolve_spirv_source(shader_crate, None, "0.9.0")
        assert source == CratesIOSource(Version(0, 9, 0))
        assert fake_run.calls == []

    def test_invalid_version_override(self, shader_crate):
        with pytest.raises(InvalidVersionError, match="not-a-version"):
            resolve_spirv_source(shader_crate, None, "not-a-version")

    def test_source_without_version_reads_shader(self, shader_crate, fake_run):
        fake_run.on(
            "cargo", "metadata",
            stdout=metadata_json(
                [package_json("spirv-std", "0.9.0", Path("/r/spirv-std/Cargo.toml"), CRATES_IO)],
                shader_crate,
            ),
        )
        source = resolve_spirv_source(shader_crate, "https://example.com/rust-gpu", None)
        assert source == CratesIOSource(Version(0, 9, 0))
        assert fake_run.calls[0]["cwd"] == str(shader_crate.resolve())


# ═══════════════════════════════════════════════════════════════════
#  spirv-std classification
# ═══════════════════════════════════════════════════════════════════


class TestParseSpirvStd:
    def test_crates_io(self):
        assert parse_spirv_std_source_and_version(_spirv_std(CRATES_IO)) == CratesIOSource(
            Version(0, 9, 0)
        )

    def test_sparse_registry_counts_as_crates_io(self):
        source = parse_spirv_std_source_and_version(
            _spirv_std("sparse+https://index.crates.io/")
        )
        assert source == CratesIOSource(Version(0, 9, 0))

    def test_git_with_query(self):
        source = parse_spirv_std_source_and_version(
            _spirv_std("git+https://github.com/Rust-GPU/rust-gpu?rev=86fc4803#86fc4803")
        )
        assert source == GitSource(url="https://github.com/Rust-GPU/rust-gpu", rev="86fc4803")

    def test_git_without_query(self):
        source = parse_spirv_std_source_and_version(
            _spirv_std("git+https://github.com/Rust-GPU/rust-gpu#abcdef0123456789")
        )
        assert source == GitSource(
            url="https://github.com/Rust-GPU/rust-gpu", rev="abcdef0123456789"
        )

    def test_git_without_rev(self):
        with pytest.raises(InvalidSourceFormatError):
            parse_spirv_std_source_and_version(
                _spirv_std("git+https://github.com/Rust-GPU/rust-gpu")
            )

    def test_unknown_source(self):
        with pytest.raises(UnknownSourceError, match="registry\\+https://my.registry"):
            parse_spirv_std_source_and_version(_spirv_std("registry+https://my.registry"))

    def test_invalid_crates_io_version(self):
        with pytest.raises(InvalidVersionError):
            parse_spirv_std_source_and_version(_spirv_std(CRATES_IO, version="latest"))

    def test_path_source(self, tmp_path):
        repo = tmp_path / "rust-gpu"
        manifest = repo / "crates" / "spirv-std" / "Cargo.toml"
        manifest.parent.mkdir(parents=True)
        manifest.write_text("")
        source = parse_spirv_std_source_and_version(
            _spirv_std(None, version="0.10.0", manifest_path=manifest)
        )
        assert source == PathSource(rust_gpu_repo_root=repo, version=Version(0, 10, 0))

    def test_path_source_missing_root(self, tmp_path):
        manifest = tmp_path / "gone" / "crates" / "spirv-std" / "Cargo.toml"
        with pytest.raises(InvalidManifestPathError):
            parse_spirv_std_source_and_version(_spirv_std(None, manifest_path=manifest))


class TestAmbiguousSource:
    def test_git_and_crates_io_at_once(self, monkeypatch):
        monkeypatch.setattr(
            "cargo_gpu.adapters.cargo.metadata.CRATES_IO_REGISTRY", "git+https://both"
        )
        with pytest.raises(AmbiguousSourceError):
            parse_spirv_std_source_and_version(_spirv_std("git+https://both"))


class TestSpirvSourceFromShader:
    def test_missing_spirv_std(self, shader_crate, fake_run):
        fake_run.on("cargo", "metadata", stdout=metadata_json([], shader_crate))
        with pytest.raises(MissingDependencyError, match="spirv-std"):
            resolve_spirv_source(shader_crate)

    def test_cargo_metadata_fails(self, shader_crate, fake_run):
        fake_run.on("cargo", "metadata", returncode=101)
        with pytest.raises(QueryMetadataError):
            resolve_spirv_source(shader_crate)

    def test_shader_crate_missing(self, tmp_path, fake_run):
        with pytest.raises(QueryMetadataError):
            resolve_spirv_source(tmp_path / "nope")
        assert fake_run.calls == []


# ═══════════════════════════════════════════════════════════════════
#  Toolchain channel
# ═══════════════════════════════════════════════════════════════════


def _backend(checkout: Path) -> Package:
    return Package.model_validate(
        package_json("rustc_codegen_spirv", "0.9.0", checkout / "Cargo.toml", CRATES_IO)
    )


class TestToolchainChannel:
    def test_reads_channel(self, tmp_path):
        checkout = write_backend_checkout(tmp_path / "backend", "nightly-2023-05-27")
        assert rust_gpu_toolchain_channel(_backend(checkout)) == "nightly-2023-05-27"

    def test_missing_build_script(self, tmp_path):
        (tmp_path / "backend").mkdir()
        with pytest.raises(InvalidBuildScriptError):
            rust_gpu_toolchain_channel(_backend(tmp_path / "backend"))

    def test_no_channel_line(self, tmp_path):
        checkout = tmp_path / "backend"
        checkout.mkdir()
        (checkout / "build.rs").write_text('  channel = "indented-does-not-count"\n')
        with pytest.raises(ChannelStartNotFoundError):
            rust_gpu_toolchain_channel(_backend(checkout))

    def test_unterminated_channel(self, tmp_path):
        checkout = tmp_path / "backend"
        checkout.mkdir()
        (checkout / "build.rs").write_text('channel = "nightly\n')
        with pytest.raises(ChannelEndNotFoundError):
            rust_gpu_toolchain_channel(_backend(checkout))

    def test_empty_channel(self, tmp_path):
        checkout = tmp_path / "backend"
        checkout.mkdir()
        (checkout / "build.rs").write_text('channel = ""\n')
        with pytest.raises(InvalidChannelSliceError):
            rust_gpu_toolchain_channel(_backend(checkout))

    def test_first_channel_line_wins(self, tmp_path):
        checkout = tmp_path / "backend"
        checkout.mkdir()
        (checkout / "build.rs").write_text('channel = "a"\nchannel = "b"\n')
        assert rust_gpu_toolchain_channel(_backend(checkout)) == "a"
