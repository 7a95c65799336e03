"""rustc introspection: builtin targets, sysroot, host/version info."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path

from crossbuild.errors import CommandError
from crossbuild.helpers import run_and_get_stdout
from crossbuild.platform import Host, HostKind, Target, needs_isolation, parse_triple

log = logging.getLogger(__name__)

# rustc releases before this could not run foreign binaries without a registered interpreter.
INTERPRETER_FREE_RELEASE = (1, 19, 0)

# Containers always run the Linux toolchain, whatever the host.
CONTAINER_HOST_TRIPLE = HostKind.X86_64_UNKNOWN_LINUX_GNU.value


@dataclass(frozen=True)
class VersionMeta:
    host_triple: str
    release: str

    @property
    def host(self) -> Host:
        return parse_triple(self.host_triple)

    @property
    def needs_interpreter(self) -> bool:
        """True when the host toolchain predates built-in support for foreign-binary execution."""
        release = release_tuple(self.release)
        if release is None:
            log.debug("Unparseable rustc release %r, assuming a modern toolchain", self.release)
            return False
        return release < INTERPRETER_FREE_RELEASE


def release_tuple(release: str) -> tuple[int, int, int] | None:
    """(major, minor, patch) of a rustc release such as 1.70.0 or 1.19.0-nightly."""
    m = re.match(r"(\d+)\.(\d+)\.(\d+)", release)
    if not m:
        return None
    return int(m.group(1)), int(m.group(2)), int(m.group(3))


def parse_version_meta(text: str) -> VersionMeta:
    """Parse `rustc -vV` output (host: ..., release: ...)."""
    fields: dict[str, str] = {}
    for line in text.splitlines():
        key, sep, value = line.partition(":")
        if sep:
            fields[key.strip()] = value.strip()
    if "host" not in fields or "release" not in fields:
        msg = "couldn't fetch the `rustc` version: unexpected `rustc -vV` output"
        raise CommandError(msg)
    return VersionMeta(host_triple=fields["host"], release=fields["release"])


def version_meta(verbose: bool = False) -> VersionMeta:
    return parse_version_meta(run_and_get_stdout(["rustc", "-vV"], verbose=verbose))


def target_list(verbose: bool = False) -> frozenset[str]:
    """Triples rustc ships target specifications for."""
    out = run_and_get_stdout(["rustc", "--print", "target-list"], verbose=verbose)
    return frozenset(line.strip() for line in out.splitlines() if line.strip())


def sysroot(host: Host, target: Target, verbose: bool = False) -> Path:
    """Active toolchain sysroot; on non-Linux hosts, the matching Linux toolchain's path for containerized targets."""
    stdout = run_and_get_stdout(["rustc", "--print", "sysroot"], verbose=verbose).strip()
    if host.kind is not HostKind.X86_64_UNKNOWN_LINUX_GNU and needs_isolation(target):
        stdout = stdout.replace(host.triple, CONTAINER_HOST_TRIPLE, 1)
    return Path(stdout)
