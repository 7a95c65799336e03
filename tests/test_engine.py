"""Tests for crossbuild.engine."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest
from conftest import BUILTIN_TARGETS, LINUX_HOST, FakeCollaborators

from crossbuild.cargo import Subcommand
from crossbuild.cli.args import parse
from crossbuild.config import Config, CrossToml, Settings
from crossbuild.config.cross_toml import BuildConfig, TargetConfig
from crossbuild.engine import (
    Engine,
    has_target_flag,
    rewrite_args,
    strip_target_flag,
    toolchain_name,
)
from crossbuild.errors import ImageNotFoundError, MetadataParseError, ToolchainError
from crossbuild.platform import Target, parse_triple
from crossbuild.rustc import VersionMeta
from crossbuild.rustup import AvailableTargets

AARCH64 = "aarch64-unknown-linux-gnu"


def _engine(
    fake: FakeCollaborators,
    host: str = LINUX_HOST,
    release: str = "1.70.0",
    settings: Settings | None = None,
) -> Engine:
    return Engine(
        settings or Settings(),
        parse_triple(host),
        BUILTIN_TARGETS,
        VersionMeta(host_triple=host, release=release),
        fake.build(),
        Path("/home/u/ws"),
    )


def _run(fake: FakeCollaborators, argv: list[str], **kwargs) -> int:
    return _engine(fake, **kwargs).run(parse(argv, BUILTIN_TARGETS))


class TestArgumentRewrite:
    def test_appends_target_once_when_missing(self) -> None:
        out = rewrite_args(["build", "--release"], Subcommand.BUILD, Target(AARCH64))
        assert out == ["build", "--release", "--target", AARCH64]

    def test_idempotent_when_target_present(self) -> None:
        once = rewrite_args(["build"], Subcommand.BUILD, Target(AARCH64))
        assert rewrite_args(once, Subcommand.BUILD, Target(AARCH64)) == once

    def test_leaves_existing_equals_form_untouched(self) -> None:
        args = ["build", f"--target={AARCH64}"]
        assert rewrite_args(args, Subcommand.BUILD, Target(AARCH64)) == args

    def test_strips_both_forms_for_metadata(self) -> None:
        args = ["metadata", "--target", "foo", "-q", "--target=bar", "--format-version", "1"]
        out = rewrite_args(args, Subcommand.METADATA, Target(AARCH64))
        assert out == ["metadata", "-q", "--format-version", "1"]

    def test_strip_keeps_target_dir(self) -> None:
        assert strip_target_flag(["--target-dir", "out", "--target=x"]) == ["--target-dir", "out"]

    def test_target_dir_is_not_a_target_flag(self) -> None:
        assert not has_target_flag(["--target-dir", "out"])
        assert has_target_flag(["--target=x"])

    def test_no_subcommand_still_gets_target(self) -> None:
        assert rewrite_args(["--version"], None, Target(AARCH64)) == [
            "--version",
            "--target",
            AARCH64,
        ]


class TestToolchainName:
    def test_default_when_no_channel(self) -> None:
        assert toolchain_name("stable-x86_64-unknown-linux-gnu", None) == (
            "stable-x86_64-unknown-linux-gnu"
        )

    def test_replaces_only_channel(self) -> None:
        assert toolchain_name("nightly-2023-01-01-x86_64-unknown-linux-gnu", "beta") == (
            "beta-2023-01-01-x86_64-unknown-linux-gnu"
        )

    def test_default_without_hyphen(self) -> None:
        assert toolchain_name("custom", "nightly") == "nightly"


class TestScenarios:
    def test_no_target_on_linux_passes_through(self, fake: FakeCollaborators) -> None:
        rc = _run(fake, ["build", "--release"])
        assert rc == 0
        assert fake.names() == ["fetch_metadata", "load_config", "run_passthrough"]
        assert fake.args_of("run_passthrough") == (["build", "--release"],)

    def test_not_a_project_passes_through_untouched(self, fake: FakeCollaborators) -> None:
        fake.metadata = None
        fake.host_rc = 7
        assert _run(fake, ["build", "--target", AARCH64]) == 7
        assert fake.names() == ["fetch_metadata", "run_passthrough"]
        assert fake.args_of("run_passthrough") == (["build", "--target", AARCH64],)

    def test_metadata_failure_aborts_without_running_cargo(self, fake: FakeCollaborators) -> None:
        fake.metadata_error = MetadataParseError("failed to parse manifest", stderr="boom")
        with pytest.raises(MetadataParseError):
            _run(fake, ["build", "--target", AARCH64])
        assert fake.names() == ["fetch_metadata"]

    def test_custom_target_discovery_is_unfiltered_and_isolated(
        self, fake: FakeCollaborators
    ) -> None:
        _run(fake, ["build", "--target", "my-custom"])
        assert fake.args_of("fetch_metadata") == (Path("/home/u/ws"), None, None)
        assert "run_passthrough" not in fake.names()
        assert fake.args_of("run_in_container")[0].triple == "my-custom"

    def test_passthrough_keeps_channel_argument(self, fake: FakeCollaborators) -> None:
        _run(fake, ["+nightly", "build"])
        assert "run_in_container" not in fake.names()
        assert fake.args_of("run_passthrough") == (["+nightly", "build"],)

    def test_container_args_drop_channel_argument(self, fake: FakeCollaborators) -> None:
        _run(fake, ["+nightly", "build", "--target", AARCH64])
        assert fake.args_of("run_in_container")[1] == ["build", "--target", AARCH64]

    def test_aarch64_build_isolated_with_single_target_flag(
        self, fake: FakeCollaborators
    ) -> None:
        fake.container_rc = 3
        fake.config = Config(CrossToml(build=BuildConfig(target=AARCH64)))
        rc = _run(fake, ["build", "--release"])
        assert rc == 3
        assert "run_passthrough" not in fake.names()
        args = fake.args_of("run_in_container")
        target, forwarded = args[0], args[1]
        assert target.triple == AARCH64
        assert forwarded == ["build", "--release", "--target", AARCH64]
        assert forwarded.count("--target") == 1

    def test_explicit_target_not_duplicated(self, fake: FakeCollaborators) -> None:
        _run(fake, ["build", "--target", AARCH64])
        forwarded = fake.args_of("run_in_container")[1]
        assert forwarded == ["build", "--target", AARCH64]

    def test_image_failure_falls_back_with_original_args(
        self, fake: FakeCollaborators, caplog: pytest.LogCaptureFixture
    ) -> None:
        fake.image_error = ImageNotFoundError("no image for aarch64.")
        fake.host_rc = 101
        with caplog.at_level(logging.WARNING, logger="crossbuild.engine"):
            rc = _run(fake, ["build", "--target", AARCH64])
        assert rc == 101
        assert "run_in_container" not in fake.names()
        assert fake.args_of("run_passthrough") == (["build", "--target", AARCH64],)
        assert "Falling back to `cargo` on the host." in caplog.text

    def test_metadata_strips_target_for_container(self, fake: FakeCollaborators) -> None:
        _run(fake, ["metadata", "--target=anything", "--format-version", "1"])
        forwarded = fake.args_of("run_in_container")[1]
        assert forwarded == ["metadata", "--format-version", "1"]

    def test_metadata_decision_strips_target_even_without_image(
        self, fake: FakeCollaborators
    ) -> None:
        fake.image_error = ImageNotFoundError("nope.")
        engine = _engine(fake)
        args = parse(["metadata", "--target=anything"], BUILTIN_TARGETS)
        decision = engine.decide(args, fake.config)
        assert decision is not None
        assert not decision.isolation_available
        assert not decision.isolation_required
        assert decision.args == ("metadata",)

    def test_other_subcommand_not_isolated(self, fake: FakeCollaborators) -> None:
        _run(fake, ["fmt", "--target", AARCH64])
        assert "run_in_container" not in fake.names()
        assert fake.args_of("run_passthrough") == (["fmt", "--target", AARCH64],)

    def test_legacy_apple_host_without_target(self, fake: FakeCollaborators) -> None:
        settings = Settings(compatibility_version="0.2.1")
        _run(fake, ["build"], host="x86_64-apple-darwin", settings=settings)
        assert fake.names() == ["fetch_metadata", "load_config", "run_passthrough"]

    def test_legacy_linux_host_without_target_uses_host_target(
        self, fake: FakeCollaborators
    ) -> None:
        settings = Settings(compatibility_version="0.2.1")
        _run(fake, ["build"], settings=settings)
        target = fake.args_of("run_in_container")[0]
        assert target.triple == LINUX_HOST


class TestToolchainStages:
    def test_installs_missing_channel_toolchain(self, fake: FakeCollaborators) -> None:
        _run(fake, ["+nightly", "build", "--target", AARCH64])
        assert fake.args_of("install_toolchain") == ("nightly-x86_64-unknown-linux-gnu",)
        sysroot = fake.args_of("run_in_container")[6]
        assert sysroot.name == "nightly-x86_64-unknown-linux-gnu"
        assert fake.args_of("run_in_container")[1] == ["build", "--target", AARCH64]

    def test_skips_installed_toolchain(self, fake: FakeCollaborators) -> None:
        _run(fake, ["build", "--target", AARCH64])
        assert "install_toolchain" not in fake.names()

    def test_empty_sysroot_name_is_fatal(self, fake: FakeCollaborators) -> None:
        fake.sysroot_path = Path("/")
        with pytest.raises(ToolchainError):
            _run(fake, ["build", "--target", AARCH64])
        assert "run_passthrough" not in fake.names()

    def test_installs_available_target(self, fake: FakeCollaborators) -> None:
        _run(fake, ["build", "--target", AARCH64])
        assert fake.args_of("install_target") == (AARCH64, "stable-x86_64-unknown-linux-gnu")
        assert "component_is_installed" not in fake.names()
        assert fake.args_of("run_in_container")[5] is False

    def test_installed_target_checks_rust_src_instead(self, fake: FakeCollaborators) -> None:
        fake.targets = AvailableTargets(LINUX_HOST, frozenset({AARCH64}), frozenset())
        fake.components = set()
        _run(fake, ["build", "--target", AARCH64])
        assert "install_target" not in fake.names()
        assert fake.args_of("install_component") == ("rust-src", "stable-x86_64-unknown-linux-gnu")

    def test_custom_target_uses_xargo(self, fake: FakeCollaborators) -> None:
        fake.config = Config(CrossToml(targets={"my-custom": TargetConfig(image="img")}))
        fake.components = set()
        _run(fake, ["build", "--target", "my-custom"])
        assert "install_target" not in fake.names()
        assert ("install_component", ("rust-src", "stable-x86_64-unknown-linux-gnu")) in fake.calls
        assert fake.args_of("run_in_container")[5] is True

    def test_configured_xargo_wins(self, fake: FakeCollaborators) -> None:
        fake.config = Config(CrossToml(targets={AARCH64: TargetConfig(xargo=True)}))
        _run(fake, ["build", "--target", AARCH64])
        assert "install_target" not in fake.names()
        assert fake.args_of("run_in_container")[5] is True

    def test_clippy_component_installed(self, fake: FakeCollaborators) -> None:
        _run(fake, ["clippy", "--target", AARCH64])
        assert fake.args_of("install_component") == ("clippy", "stable-x86_64-unknown-linux-gnu")

    def test_stage_order(self, fake: FakeCollaborators) -> None:
        _run(fake, ["build", "--target", AARCH64])
        assert fake.names() == [
            "fetch_metadata",
            "load_config",
            "sysroot",
            "installed_toolchains",
            "available_targets",
            "install_target",
            "resolve_image",
            "run_in_container",
        ]


class TestEmulation:
    def test_old_rustc_registers_interpreter_for_test(self, fake: FakeCollaborators) -> None:
        fake.registered = False
        _run(fake, ["test", "--target", AARCH64], release="1.18.0")
        names = fake.names()
        assert names.index("register") < names.index("run_in_container")

    def test_already_registered_skips(self, fake: FakeCollaborators) -> None:
        _run(fake, ["test", "--target", AARCH64], release="1.18.0")
        assert "is_registered" in fake.names()
        assert "register" not in fake.names()

    def test_build_never_registers(self, fake: FakeCollaborators) -> None:
        fake.registered = False
        _run(fake, ["build", "--target", AARCH64], release="1.18.0")
        assert "is_registered" not in fake.names()

    def test_modern_rustc_never_registers(self, fake: FakeCollaborators) -> None:
        fake.registered = False
        _run(fake, ["test", "--target", AARCH64])
        assert "is_registered" not in fake.names()

    def test_registration_failure_is_fatal(self, fake: FakeCollaborators) -> None:
        from crossbuild.errors import EmulationError

        fake.registered = False
        collab = fake.build()

        def boom(target, verbose):
            raise EmulationError("couldn't register")

        collab.register = boom
        engine = Engine(
            Settings(),
            parse_triple(LINUX_HOST),
            BUILTIN_TARGETS,
            VersionMeta(LINUX_HOST, "1.18.0"),
            collab,
            Path("/home/u/ws"),
        )
        with pytest.raises(EmulationError):
            engine.run(parse(["run", "--target", AARCH64], BUILTIN_TARGETS))
        assert "run_in_container" not in fake.names()
        assert "run_passthrough" not in fake.names()


class TestContainerCall:
    def test_passes_resolved_target_dir_and_cwd(self, fake: FakeCollaborators) -> None:
        _run(fake, ["build", "--target", AARCH64])
        args = fake.args_of("run_in_container")
        assert args[2] == fake.metadata.target_directory
        assert args[3] is fake.metadata
        assert args[9] == Path("/home/u/ws")
