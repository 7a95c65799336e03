"""binfmt_misc interpreter registration for running foreign binaries."""

from __future__ import annotations

import logging
from pathlib import Path

from crossbuild.errors import CommandError, EmulationError
from crossbuild.helpers import run_checked
from crossbuild.platform import Target, target_is

log = logging.getLogger(__name__)

BINFMT_MISC_DIR = Path("/proc/sys/fs/binfmt_misc")
REGISTER_IMAGE = "ubuntu:16.04"

_QEMU_INSTALL = (
    "apt-get update && apt-get install --no-install-recommends --assume-yes "
    "binfmt-support qemu-user-static"
)
_WINE_REGISTER = (
    "mount binfmt_misc -t binfmt_misc /proc/sys/fs/binfmt_misc && "
    "echo ':wine:M::MZ::/usr/bin/run-detectors:' > /proc/sys/fs/binfmt_misc/register"
)


def _binfmt_entry(target: Target) -> str:
    # qemu-user-static registers every architecture at once; qemu-arm stands for all of them.
    return "wine" if target_is(target, "windows") else "qemu-arm"


def is_registered(target: Target, binfmt_dir: Path = BINFMT_MISC_DIR) -> bool:
    """True if the binfmt_misc entry for target's interpreter exists and is enabled."""
    path = binfmt_dir / _binfmt_entry(target)
    if not path.exists():
        return False
    try:
        lines = path.read_text().splitlines()
    except OSError as e:
        msg = f"couldn't read {path}"
        raise EmulationError(msg) from e
    return bool(lines) and lines[0].strip() == "enabled"


def register(target: Target, verbose: bool = False, *, engine: str = "docker") -> None:
    """Register QEMU (or wine for Windows targets) with binfmt_misc via a privileged container."""
    script = _WINE_REGISTER if target_is(target, "windows") else _QEMU_INSTALL
    log.debug("Registering interpreter for %s", target)
    try:
        run_checked(
            [engine, "run", "--privileged", "--rm", REGISTER_IMAGE, "sh", "-c", script],
            verbose=verbose,
        )
    except CommandError as e:
        msg = f"couldn't register an interpreter for {target.triple}"
        raise EmulationError(msg) from e
