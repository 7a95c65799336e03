"""Run cargo (or xargo) inside the target's container image."""

from __future__ import annotations

import logging
import os
import shlex
import shutil
import sys
from collections.abc import Mapping, Sequence
from pathlib import Path, PurePosixPath

from crossbuild.cargo.metadata import ProjectMetadata
from crossbuild.config import Config, Settings
from crossbuild.docker.image import image
from crossbuild.docker.mounts import MountFinder, container_path
from crossbuild.errors import CommandError
from crossbuild.helpers import run_and_get_status
from crossbuild.platform import Target, needs_privileged_isolation

log = logging.getLogger(__name__)

PROJECT_MOUNT = PurePosixPath("/project")
TARGET_MOUNT = "/target"
CARGO_MOUNT = "/cargo"
XARGO_MOUNT = "/xargo"
RUST_MOUNT = "/rust"


def container_engine(settings: Settings) -> str:
    """CROSS_CONTAINER_ENGINE, else docker, else podman."""
    if settings.container_engine:
        return settings.container_engine
    for candidate in ("docker", "podman"):
        if shutil.which(candidate):
            return candidate
    msg = "no container engine found; install docker or podman, or set CROSS_CONTAINER_ENGINE"
    raise CommandError(msg)


def rewrite_target_dir(args: Sequence[str]) -> list[str]:
    """Point --target-dir (both forms) at the container's /target mount."""
    out: list[str] = []
    it = iter(args)
    for arg in it:
        if arg == "--target-dir":
            out.append(arg)
            if next(it, None) is not None:
                out.append(TARGET_MOUNT)
        elif arg.startswith("--target-dir="):
            out.append(f"--target-dir={TARGET_MOUNT}")
        else:
            out.append(arg)
    return out


def _home_dir(environ: Mapping[str, str], var: str, default: str) -> Path:
    value = environ.get(var)
    if value:
        return Path(value)
    return Path.home() / default


def _user_args(environ: Mapping[str, str]) -> list[str]:
    out: list[str] = []
    if hasattr(os, "getuid"):
        out += ["--user", f"{os.getuid()}:{os.getgid()}"]
    user = environ.get("USER")
    if user:
        out += ["-e", f"USER={user}"]
    return out


def build_command(
    engine: str,
    target: Target,
    args: Sequence[str],
    target_dir: Path | None,
    metadata: ProjectMetadata,
    config: Config,
    uses_xargo: bool,
    sysroot: Path,
    cwd: Path,
    environ: Mapping[str, str],
    mount_finder: MountFinder,
    interactive: bool = False,
) -> list[str]:
    """Full `<engine> run ...` command line for target."""
    root = metadata.workspace_root
    target_dir = target_dir or metadata.target_directory
    cargo_dir = _home_dir(environ, "CARGO_HOME", ".cargo")
    xargo_dir = _home_dir(environ, "XARGO_HOME", ".xargo")
    for d in (cargo_dir, xargo_dir, target_dir):
        d.mkdir(parents=True, exist_ok=True)

    host = mount_finder.find_mount_path
    program = "xargo" if uses_xargo else "cargo"
    inner = shlex.join([program, *rewrite_target_dir(args)])

    cmd = [engine, "run", "--userns", "host"]
    cmd += ["-e", "PKG_CONFIG_ALLOW_CROSS=1"]
    cmd += ["-e", f"XARGO_HOME={XARGO_MOUNT}", "-e", f"CARGO_HOME={CARGO_MOUNT}"]
    cmd += ["-e", f"CARGO_TARGET_DIR={TARGET_MOUNT}"]
    cmd += ["-e", "CROSS_RUNNER=" + (config.runner(target) or "")]

    for var in config.env_passthrough(target):
        cmd += ["-e", var]

    for var in config.env_volumes(target):
        value = environ.get(var)
        if not value:
            log.debug("Volume variable %s is unset, skipping", var)
            continue
        mount = Path(value)
        cmd += ["-v", f"{host(mount)}:{mount.as_posix()}:Z", "-e", f"{var}={mount.as_posix()}"]

    if needs_privileged_isolation(target):
        cmd.append("--privileged")

    cmd.append("--rm")
    cmd += _user_args(environ)

    cmd += ["-v", f"{host(xargo_dir)}:{XARGO_MOUNT}:Z"]
    cmd += ["-v", f"{host(cargo_dir)}:{CARGO_MOUNT}:Z"]
    # anonymous volume shadows the host's cargo bin dir
    cmd += ["-v", f"{CARGO_MOUNT}/bin"]
    cmd += ["-v", f"{host(root)}:{PROJECT_MOUNT}:Z"]
    cmd += ["-v", f"{host(sysroot)}:{RUST_MOUNT}:Z,ro"]
    cmd += ["-v", f"{host(target_dir)}:{TARGET_MOUNT}:Z"]

    for dep in metadata.path_dependencies():
        cmd += ["-v", f"{host(dep)}:{dep.as_posix()}:Z"]

    cmd += ["-w", str(container_path(cwd, root, PROJECT_MOUNT))]
    cmd.append("-it" if interactive else "-i")
    cmd.append(image(config, target))
    cmd += ["sh", "-c", f"PATH=$PATH:{RUST_MOUNT}/bin {inner}"]
    return cmd


def run(
    target: Target,
    args: Sequence[str],
    target_dir: Path | None,
    metadata: ProjectMetadata,
    config: Config,
    uses_xargo: bool,
    sysroot: Path,
    verbose: bool,
    docker_in_docker: bool,
    cwd: Path,
    settings: Settings,
) -> int:
    """Run the build in target's image. Returns the container's exit code."""
    engine = container_engine(settings)
    finder = MountFinder.detect(engine, docker_in_docker, settings.environ, verbose)
    cmd = build_command(
        engine,
        target,
        args,
        target_dir,
        metadata,
        config,
        uses_xargo,
        sysroot,
        cwd,
        settings.environ,
        finder,
        interactive=sys.stdin.isatty(),
    )
    return run_and_get_status(cmd, verbose=verbose)
