"""
Tests for domain models.
"""

from pathlib import Path

import pytest

from cargo_gpu.core.errors import MissingTargetError
from cargo_gpu.core.models.backend import SpirvCodegenBackend
from cargo_gpu.core.models.builder import CompileResult, SpirvBuilderConfig
from cargo_gpu.core.models.linkage import Linkage
from cargo_gpu.core.models.source import (
    CratesIOSource,
    GitSource,
    PathSource,
    to_dirname,
)
from cargo_gpu.core.models.version import Version


class TestVersion:
    def test_parse_and_str(self):
        v = Version.parse("0.9.0")
        assert (v.major, v.minor, v.patch) == (0, 9, 0)
        assert str(v) == "0.9.0"

    def test_parse_prerelease_and_build(self):
        v = Version.parse("1.2.3-alpha.1+build.5")
        assert v.pre == ("alpha", "1")
        assert v.build == ("build", "5")
        assert str(v) == "1.2.3-alpha.1+build.5"

    @pytest.mark.parametrize("bad", ["", "1.2", "1.2.3.4", "v1.2.3", "01.2.3", "1.2.3-01"])
    def test_rejects_invalid(self, bad):
        with pytest.raises(ValueError):
            Version.parse(bad)

    def test_prerelease_sorts_before_release(self):
        assert Version.parse("1.83.0-nightly") < Version.parse("1.83.0")
        assert Version.parse("1.82.0") < Version.parse("1.83.0-nightly")

    def test_prerelease_identifier_precedence(self):
        ordered = [
            "1.0.0-alpha", "1.0.0-alpha.1", "1.0.0-alpha.beta", "1.0.0-beta",
            "1.0.0-beta.2", "1.0.0-beta.11", "1.0.0-rc.1", "1.0.0",
        ]
        versions = [Version.parse(v) for v in ordered]
        assert sorted(reversed(versions)) == versions

    def test_build_metadata_ignored_for_ordering(self):
        a, b = Version.parse("1.0.0+a"), Version.parse("1.0.0+b")
        assert not a < b and not b < a

    def test_parse_rustc_version(self):
        v = Version.parse_rustc_version("rustc 1.83.0-nightly (90b35a623 2024-11-26)\n")
        assert v == Version(1, 83, 0, ("nightly",))

    def test_parse_rustc_version_garbage(self):
        with pytest.raises(ValueError):
            Version.parse_rustc_version("cargo 1.80.0")


class TestSpirvSource:
    def test_to_dirname_git(self):
        assert (
            to_dirname("https://github.com/Rust-GPU/rust-gpu+86fc4803")
            == "https___github_com_Rust-GPU_rust-gpu+86fc4803"
        )

    def test_to_dirname_strips_quotes_and_braces(self):
        assert to_dirname("{a b}\"c'\n@d=e:f") == "abc_d_e_f"

    def test_crates_io_display_and_dir(self, tmp_path):
        source = CratesIOSource(Version.parse("0.9.0"))
        assert str(source) == "0.9.0"
        assert not source.is_path
        assert source.install_dir(tmp_path) == tmp_path / "codegen" / "0_9_0"

    def test_git_display_truncates_rev(self, tmp_path):
        source = GitSource(
            url="https://github.com/Rust-GPU/rust-gpu",
            rev="86fc48032c4cd4afb74f1d81ae859711d20386a1",
        )
        assert str(source) == "https://github.com/Rust-GPU/rust-gpu+86fc4803"
        assert source.rev == "86fc48032c4cd4afb74f1d81ae859711d20386a1"
        assert source.install_dir(tmp_path) == (
            tmp_path / "codegen" / "https___github_com_Rust-GPU_rust-gpu+86fc4803"
        )

    def test_git_short_rev_kept_whole(self):
        assert str(GitSource(url="u", rev="abc")) == "u+abc"

    def test_git_revs_sharing_prefix_share_dir(self, tmp_path):
        a = GitSource(url="https://x", rev="86fc4803aaaa")
        b = GitSource(url="https://x", rev="86fc4803bbbb")
        assert a != b
        assert a.install_dir(tmp_path) == b.install_dir(tmp_path)

    def test_path_source_builds_in_place(self, tmp_path):
        root = tmp_path / "rust-gpu"
        source = PathSource(rust_gpu_repo_root=root, version=Version.parse("0.10.0"))
        assert source.is_path
        assert source.install_dir(tmp_path / "cache") == root
        assert str(source) == f"{root}+0.10.0"

    def test_install_dir_is_deterministic(self, tmp_path):
        a = CratesIOSource(Version.parse("0.9.0"))
        b = CratesIOSource(Version.parse("0.9.0"))
        assert a == b
        assert a.install_dir(tmp_path) == b.install_dir(tmp_path)


class TestLinkage:
    def test_new_strips_colons_for_wgsl(self):
        linkage = Linkage.new("main::fs", Path("shaders") / "main.spv")
        assert linkage.entry_point == "main::fs"
        assert linkage.wgsl_entry_point == "mainfs"
        assert linkage.source_path == "shaders/main.spv"


class TestCompileResult:
    def test_single_module_shared_by_entry_points(self):
        result = CompileResult.model_validate(
            {"entry_points": ["main_vs", "main_fs"], "module": "/tmp/shader.spv"}
        )
        assert result.shaders() == [
            ("main_vs", Path("/tmp/shader.spv")),
            ("main_fs", Path("/tmp/shader.spv")),
        ]

    def test_multimodule(self):
        result = CompileResult.model_validate(
            {"entry_points": [], "module": {"vs": "/tmp/vs.spv", "fs": "/tmp/fs.spv"}}
        )
        assert dict(result.shaders()) == {"vs": Path("/tmp/vs.spv"), "fs": Path("/tmp/fs.spv")}


class TestSpirvCodegenBackend:
    def test_configure_builder(self, tmp_path):
        backend = SpirvCodegenBackend(
            rustc_codegen_spirv_location=tmp_path / "librustc_codegen_spirv.so",
            toolchain_channel="nightly-2024-04-24",
            target_spec_dir=tmp_path / "target-specs",
        )
        config = SpirvBuilderConfig(path_to_crate=tmp_path, target="spirv-unknown-vulkan1.2")
        configured = backend.configure_builder(config)
        assert configured.rustc_codegen_spirv_location == tmp_path / "librustc_codegen_spirv.so"
        assert configured.toolchain_overwrite == "nightly-2024-04-24"
        assert configured.path_to_target_spec == (
            tmp_path / "target-specs" / "spirv-unknown-vulkan1.2.json"
        )
        assert config.toolchain_overwrite is None

    def test_configure_builder_requires_target(self, tmp_path):
        backend = SpirvCodegenBackend(tmp_path / "lib.so", "nightly", tmp_path)
        with pytest.raises(MissingTargetError):
            backend.configure_builder(SpirvBuilderConfig(path_to_crate=tmp_path))
