"""Pytest fixtures for crossbuild tests."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from crossbuild.cargo import Package, ProjectMetadata
from crossbuild.config import Config, Settings
from crossbuild.engine import Collaborators
from crossbuild.rustup import AvailableTargets

LINUX_HOST = "x86_64-unknown-linux-gnu"

BUILTIN_TARGETS = frozenset(
    {
        "x86_64-unknown-linux-gnu",
        "aarch64-unknown-linux-gnu",
        "armv7-unknown-linux-gnueabihf",
        "arm-linux-androideabi",
        "x86_64-apple-darwin",
        "aarch64-apple-darwin",
        "x86_64-pc-windows-msvc",
        "x86_64-pc-windows-gnu",
        "wasm32-unknown-unknown",
        "thumbv7m-none-eabi",
    }
)


@pytest.fixture
def project(tmp_path: Path) -> ProjectMetadata:
    """Workspace with one member, one path dependency and one registry dependency."""
    root = tmp_path / "ws"
    return ProjectMetadata(
        workspace_root=root,
        target_directory=root / "target",
        packages=(
            Package("app 0.1.0 (path+file://ws)", root / "Cargo.toml"),
            Package("local 0.1.0 (path+file://local)", tmp_path / "local" / "Cargo.toml"),
            Package(
                "serde 1.0.0 (registry+https://github.com/rust-lang/crates.io-index)",
                tmp_path / "registry" / "serde" / "Cargo.toml",
                source="registry+https://github.com/rust-lang/crates.io-index",
            ),
        ),
        workspace_members=("app 0.1.0 (path+file://ws)",),
    )


class FakeCollaborators:
    """Records every collaborator call in order; behaviour is set through attributes."""

    def __init__(self, metadata: ProjectMetadata | None, config: Config | None = None):
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.metadata = metadata
        self.metadata_error: Exception | None = None
        self.config = config or Config()
        self.sysroot_path = Path("/home/u/.rustup/toolchains/stable-x86_64-unknown-linux-gnu")
        self.toolchains = ["stable-x86_64-unknown-linux-gnu"]
        self.targets = AvailableTargets(
            default=LINUX_HOST,
            installed=frozenset(),
            not_installed=frozenset(BUILTIN_TARGETS - {LINUX_HOST}),
        )
        self.components: set[str] = {"rust-src"}
        self.image_error: Exception | None = None
        self.registered = True
        self.container_rc = 0
        self.host_rc = 0

    def _record(self, name: str, *args: Any) -> None:
        self.calls.append((name, args))

    def names(self) -> list[str]:
        return [name for name, _ in self.calls]

    def args_of(self, name: str) -> tuple[Any, ...]:
        return next(a for n, a in self.calls if n == name)

    def build(self) -> Collaborators:
        def fetch_metadata(*args: Any, **kwargs: Any) -> ProjectMetadata | None:
            self._record("fetch_metadata", *args)
            if self.metadata_error is not None:
                raise self.metadata_error
            return self.metadata

        def load_config(root: Path, settings: Settings) -> Config:
            self._record("load_config", root)
            return self.config

        def sysroot(host, target, verbose):
            self._record("sysroot", host, target)
            return self.sysroot_path

        def installed_toolchains(verbose):
            self._record("installed_toolchains")
            return list(self.toolchains)

        def install_toolchain(toolchain, verbose):
            self._record("install_toolchain", toolchain)
            self.toolchains.append(toolchain)

        def available_targets(toolchain, verbose):
            self._record("available_targets", toolchain)
            return self.targets

        def install_target(target, toolchain, verbose):
            self._record("install_target", target.triple, toolchain)

        def component_is_installed(component, toolchain, verbose):
            self._record("component_is_installed", component)
            return component in self.components

        def install_component(component, toolchain, verbose):
            self._record("install_component", component, toolchain)
            self.components.add(component)

        def resolve_image(config, target):
            self._record("resolve_image", target.triple)
            if self.image_error is not None:
                raise self.image_error
            return f"ghcr.io/cross-rs/{target.triple}:test"

        def is_registered(target):
            self._record("is_registered", target.triple)
            return self.registered

        def register(target, verbose):
            self._record("register", target.triple)

        def run_in_container(*args: Any) -> int:
            self._record("run_in_container", *args)
            return self.container_rc

        def run_passthrough(args, verbose):
            self._record("run_passthrough", list(args))
            return self.host_rc

        return Collaborators(
            fetch_metadata=fetch_metadata,
            load_config=load_config,
            sysroot=sysroot,
            installed_toolchains=installed_toolchains,
            install_toolchain=install_toolchain,
            available_targets=available_targets,
            install_target=install_target,
            component_is_installed=component_is_installed,
            install_component=install_component,
            resolve_image=resolve_image,
            is_registered=is_registered,
            register=register,
            run_in_container=run_in_container,
            run_passthrough=run_passthrough,
        )


@pytest.fixture
def fake(project: ProjectMetadata) -> FakeCollaborators:
    return FakeCollaborators(project)
