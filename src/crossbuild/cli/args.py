"""Inspection of the cargo argument list.

Arguments are not consumed. Args.raw is argv exactly as typed, for host cargo.
Args.all drops a leading `+channel` and empty arguments; it is what gets
rewritten for the container.
"""

from __future__ import annotations

from collections.abc import Collection, Sequence
from dataclasses import dataclass
from pathlib import Path

from crossbuild.cargo.subcommand import Subcommand
from crossbuild.platform import Target, classify_target

VERSION_FLAGS = ("--version", "-V")
VERBOSE_FLAGS = ("--verbose", "-v", "-vv")


@dataclass(frozen=True)
class Args:
    raw: tuple[str, ...] = ()
    all: tuple[str, ...] = ()
    subcommand: Subcommand | None = None
    channel: str | None = None
    target: Target | None = None
    target_dir: Path | None = None
    manifest_path: Path | None = None
    docker_in_docker: bool = False

    @property
    def verbose(self) -> bool:
        return any(a in VERBOSE_FLAGS for a in self.all)

    @property
    def very_verbose(self) -> bool:
        return "-vv" in self.all

    @property
    def wants_version(self) -> bool:
        """--version/-V without a subcommand (cargo's own version query)."""
        return self.subcommand is None and any(a in VERSION_FLAGS for a in self.all)


def _flag_value(arg: str, flag: str) -> str | None:
    """Value of --flag=value, or None if arg is not that form."""
    prefix = flag + "="
    if arg.startswith(prefix):
        return arg[len(prefix) :]
    return None


def parse(
    argv: Sequence[str],
    builtin_list: Collection[str],
    *,
    docker_in_docker: bool = False,
) -> Args:
    """Inspect argv (without the program name)."""
    channel = None
    target = None
    target_dir = None
    manifest_path = None
    subcommand = None
    out: list[str] = []

    i = 0
    while i < len(argv):
        arg = argv[i]
        i += 1
        if not arg:
            continue
        if arg.startswith("+") and not out:
            channel = arg[1:]
            continue
        if arg in ("--manifest-path", "--target", "--target-dir"):
            out.append(arg)
            if i >= len(argv):
                continue
            value = argv[i]
            i += 1
            out.append(value)
            if arg == "--manifest-path":
                manifest_path = Path(value)
            elif arg == "--target":
                target = classify_target(value, builtin_list)
            else:
                target_dir = Path(value)
            continue
        if (v := _flag_value(arg, "--manifest-path")) is not None:
            manifest_path = Path(v)
        elif (v := _flag_value(arg, "--target")) is not None:
            target = classify_target(v, builtin_list)
        elif (v := _flag_value(arg, "--target-dir")) is not None:
            target_dir = Path(v)
        elif not arg.startswith("-") and subcommand is None:
            subcommand = Subcommand.classify(arg)
        out.append(arg)

    return Args(
        raw=tuple(argv),
        all=tuple(out),
        subcommand=subcommand,
        channel=channel,
        target=target,
        target_dir=target_dir,
        manifest_path=manifest_path,
        docker_in_docker=docker_in_docker,
    )
