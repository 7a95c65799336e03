"""Decide whether a cargo invocation runs in a container or on the host, and run it.

Stages run strictly in order; each one fills in part of a Decision:

1. discover        cargo metadata for cwd; no project -> pass-through
2. resolve target  --target, else configured target, else the host
3. gate            is_host_supported(); unsupported -> pass-through
4. toolchain       sysroot name, +channel override, install if missing
5. components      xargo choice, rust-std / rust-src / clippy installs
6. image probe     image lookup; failure only marks isolation unavailable
7. rewrite args    strip or ensure --target
8. dispatch        emulation registration, then the container run
9. fallback        cargo on the host with the user's original arguments
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Collection, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from crossbuild import docker, rustc, rustup
from crossbuild.cargo import ProjectMetadata, Subcommand, fetch_metadata, run_passthrough
from crossbuild.cli.args import Args
from crossbuild.config import Config, Settings, load_config
from crossbuild.errors import CrossError, ToolchainError
from crossbuild.platform import (
    Host,
    Target,
    is_host_supported,
    needs_emulation,
    needs_isolation,
    target_from_host,
)

log = logging.getLogger(__name__)

TARGET_FLAG = "--target"


@dataclass
class Collaborators:
    """External operations the engine drives. Tests substitute fakes."""

    fetch_metadata: Callable[..., ProjectMetadata | None]
    load_config: Callable[[Path, Settings], Config]
    sysroot: Callable[[Host, Target, bool], Path]
    installed_toolchains: Callable[[bool], list[str]]
    install_toolchain: Callable[[str, bool], None]
    available_targets: Callable[[str, bool], rustup.AvailableTargets]
    install_target: Callable[[Target, str, bool], None]
    component_is_installed: Callable[[str, str, bool], bool]
    install_component: Callable[[str, str, bool], None]
    resolve_image: Callable[[Config, Target], str]
    is_registered: Callable[[Target], bool]
    register: Callable[[Target, bool], None]
    run_in_container: Callable[..., int]
    run_passthrough: Callable[[Sequence[str], bool], int]

    @classmethod
    def default(cls, settings: Settings) -> Collaborators:
        def _register(target: Target, verbose: bool) -> None:
            docker.register(target, verbose, engine=docker.container_engine(settings))

        def _passthrough(args: Sequence[str], verbose: bool) -> int:
            return run_passthrough(args, verbose, cargo=settings.cargo)

        def _metadata(*args: Any, **kwargs: Any) -> ProjectMetadata | None:
            return fetch_metadata(*args, cargo=settings.cargo, **kwargs)

        return cls(
            fetch_metadata=_metadata,
            load_config=load_config,
            sysroot=rustc.sysroot,
            installed_toolchains=rustup.installed_toolchains,
            install_toolchain=rustup.install_toolchain,
            available_targets=rustup.available_targets,
            install_target=rustup.install_target,
            component_is_installed=rustup.component_is_installed,
            install_component=rustup.install_component,
            resolve_image=docker.image,
            is_registered=docker.is_registered,
            register=_register,
            run_in_container=docker.run_in_container,
            run_passthrough=_passthrough,
        )


@dataclass
class Decision:
    """What the engine decided for one invocation; consumed once at dispatch."""

    target: Target
    toolchain: str = ""
    sysroot: Path | None = None
    uses_xargo: bool = False
    isolation_available: bool = False
    isolation_required: bool = False
    emulation_required: bool = False
    args: tuple[str, ...] = field(default_factory=tuple)


def has_target_flag(args: Sequence[str]) -> bool:
    return any(a == TARGET_FLAG or a.startswith(TARGET_FLAG + "=") for a in args)


def strip_target_flag(args: Sequence[str]) -> list[str]:
    """Remove every `--target X` and `--target=X`, keeping everything else in order."""
    out: list[str] = []
    it = iter(args)
    for arg in it:
        if arg == TARGET_FLAG:
            next(it, None)
        elif arg.startswith(TARGET_FLAG + "="):
            continue
        else:
            out.append(arg)
    return out


def rewrite_args(args: Sequence[str], subcommand: Subcommand | None, target: Target) -> list[str]:
    """Arguments for the container: --target removed if subcommand forbids it, else ensured present."""
    if subcommand is not None and not subcommand.needs_target_in_command:
        return strip_target_flag(args)
    if not has_target_flag(args):
        return [*args, TARGET_FLAG, target.triple]
    return list(args)


def toolchain_name(default_toolchain: str, channel: str | None) -> str:
    """Swap the channel component of default_toolchain (e.g. stable-x86_64-... + nightly -> nightly-x86_64-...)."""
    if channel is None:
        return default_toolchain
    return "-".join([channel, *default_toolchain.split("-", 1)[1:]])


class Engine:
    def __init__(
        self,
        settings: Settings,
        host: Host,
        builtin_targets: Collection[str],
        version_meta: rustc.VersionMeta,
        collaborators: Collaborators,
        cwd: Path,
    ):
        self.settings = settings
        self.host = host
        self.builtin_targets = builtin_targets
        self.version_meta = version_meta
        self.collab = collaborators
        self.cwd = cwd

    # --- stages ---

    def discover(self, args: Args) -> ProjectMetadata | None:
        # unfiltered: cargo cannot resolve custom targets for --filter-platform
        return self.collab.fetch_metadata(
            self.cwd,
            args.manifest_path,
            args.target_dir,
            verbose=args.verbose,
            no_deps=False,
        )

    def requested_target(self, args: Args, config: Config) -> Target | None:
        """Explicit --target, else the configured default. None means "the host"."""
        return args.target or config.target(self.builtin_targets)

    def resolve_toolchain(self, args: Args, decision: Decision) -> None:
        sysroot = self.collab.sysroot(self.host, decision.target, args.verbose)
        default_toolchain = sysroot.name
        if not default_toolchain:
            msg = f"couldn't get toolchain name from sysroot `{sysroot}`"
            raise ToolchainError(msg)
        toolchain = toolchain_name(default_toolchain, args.channel)
        decision.toolchain = toolchain
        decision.sysroot = sysroot.with_name(toolchain)
        if toolchain not in self.collab.installed_toolchains(args.verbose):
            self.collab.install_toolchain(toolchain, args.verbose)

    def ensure_components(self, args: Args, config: Config, decision: Decision) -> None:
        target, toolchain, verbose = decision.target, decision.toolchain, args.verbose
        available = self.collab.available_targets(toolchain, verbose)
        uses_xargo = config.xargo(target)
        if uses_xargo is None:
            uses_xargo = not target.is_builtin or not available.contains(target)
        decision.uses_xargo = uses_xargo

        if not uses_xargo and not available.is_installed(target) and available.contains(target):
            self.collab.install_target(target, toolchain, verbose)
        elif not self.collab.component_is_installed("rust-src", toolchain, verbose):
            self.collab.install_component("rust-src", toolchain, verbose)

        if args.subcommand is Subcommand.CLIPPY and not self.collab.component_is_installed(
            "clippy", toolchain, verbose
        ):
            self.collab.install_component("clippy", toolchain, verbose)

    def probe_image(self, config: Config, decision: Decision) -> None:
        """Mark isolation available iff an image resolves. Never raises."""
        try:
            image = self.collab.resolve_image(config, decision.target)
        except CrossError as e:
            log.warning("%s Falling back to `cargo` on the host.", e)
            decision.isolation_available = False
            return
        log.debug("Using image %s", image)
        decision.isolation_available = True

    def should_isolate(self, args: Args, decision: Decision) -> bool:
        return (
            decision.isolation_available
            and needs_isolation(decision.target)
            and args.subcommand is not None
            and args.subcommand.needs_isolation
        )

    def ensure_emulation(self, args: Args, decision: Decision) -> None:
        decision.emulation_required = (
            self.version_meta.needs_interpreter
            and args.subcommand is not None
            and args.subcommand.needs_emulation_support
            and needs_emulation(decision.target)
        )
        if decision.emulation_required and not self.collab.is_registered(decision.target):
            self.collab.register(decision.target, args.verbose)

    # --- driver ---

    def decide(self, args: Args, config: Config) -> Decision | None:
        """Stages 2-7. None means the gate rejected isolation outright."""
        requested = self.requested_target(args, config)
        target = requested or target_from_host(self.host, self.builtin_targets)
        config.confusable_target(target)
        if not is_host_supported(self.host, requested, self.settings.compatibility_version):
            log.debug("%s -> %s does not need a container", self.host, target)
            return None

        decision = Decision(target=target)
        self.resolve_toolchain(args, decision)
        self.ensure_components(args, config, decision)
        self.probe_image(config, decision)
        decision.args = tuple(rewrite_args(args.all, args.subcommand, target))
        decision.isolation_required = self.should_isolate(args, decision)
        return decision

    def run(self, args: Args) -> int:
        metadata = self.discover(args)
        if metadata is None:
            return self.passthrough(args)
        config = self.collab.load_config(metadata.workspace_root, self.settings)
        decision = self.decide(args, config)
        if decision is None or not decision.isolation_required:
            return self.passthrough(args)

        self.ensure_emulation(args, decision)
        return self.collab.run_in_container(
            decision.target,
            list(decision.args),
            metadata.target_directory,
            metadata,
            config,
            decision.uses_xargo,
            decision.sysroot,
            args.verbose,
            args.docker_in_docker,
            self.cwd,
            self.settings,
        )

    def passthrough(self, args: Args) -> int:
        # always the user's literal arguments, never the rewritten ones
        return self.collab.run_passthrough(list(args.raw), args.verbose)
