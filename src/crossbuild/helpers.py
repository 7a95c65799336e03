"""Shared helpers for crossbuild (subprocess, env parsing).

Used by cargo, rustc, rustup, docker and the engine.
"""

from __future__ import annotations

import logging
import re
import shlex
import subprocess
import sys
from collections.abc import Mapping, Sequence
from pathlib import Path

from crossbuild.errors import CommandError

log = logging.getLogger(__name__)

# --- Subprocess ---


def format_command(cmd: Sequence[str | Path]) -> str:
    """Shell-quoted rendering of cmd for echoing and error messages."""
    return shlex.join(str(c) for c in cmd)


def print_command(cmd: Sequence[str | Path]) -> None:
    """Echo cmd to stderr the way `set -x` does."""
    print(f"+ {format_command(cmd)}", file=sys.stderr)


def run_and_get_status(
    cmd: Sequence[str | Path],
    verbose: bool = False,
    cwd: Path | None = None,
) -> int:
    """Run cmd with inherited stdio. Returns the exit code; raises CommandError if it cannot be spawned."""
    if verbose:
        print_command(cmd)
    try:
        r = subprocess.run([str(c) for c in cmd], cwd=cwd)
    except OSError as e:
        msg = f"couldn't execute `{format_command(cmd)}`: {e}"
        raise CommandError(msg) from e
    return r.returncode


def run_and_get_output(
    cmd: Sequence[str | Path],
    verbose: bool = False,
    cwd: Path | None = None,
) -> subprocess.CompletedProcess[str]:
    """Run cmd capturing stdout/stderr as text. Does not check the exit code."""
    if verbose:
        print_command(cmd)
    try:
        r = subprocess.run(
            [str(c) for c in cmd],
            capture_output=True,
            text=True,
            cwd=cwd,
        )
    except OSError as e:
        msg = f"couldn't execute `{format_command(cmd)}`: {e}"
        raise CommandError(msg) from e
    log.debug("%s exited with %s", format_command(cmd), r.returncode)
    return r


def run_and_get_stdout(
    cmd: Sequence[str | Path],
    verbose: bool = False,
    cwd: Path | None = None,
) -> str:
    """Run cmd and return stdout. Raises CommandError (with stderr attached) on non-zero exit."""
    r = run_and_get_output(cmd, verbose=verbose, cwd=cwd)
    if r.returncode != 0:
        msg = f"`{format_command(cmd)}` failed with exit code {r.returncode}"
        if r.stderr and r.stderr.strip():
            msg += f"\n{r.stderr.strip()}"
        raise CommandError(msg, stderr=r.stderr or "")
    return r.stdout or ""


def run_checked(
    cmd: Sequence[str | Path],
    verbose: bool = False,
    cwd: Path | None = None,
) -> None:
    """Run cmd with inherited stdio; raise CommandError on non-zero exit."""
    rc = run_and_get_status(cmd, verbose=verbose, cwd=cwd)
    if rc != 0:
        msg = f"`{format_command(cmd)}` failed with exit code {rc}"
        raise CommandError(msg)


# --- Env ---

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


def parse_env_bool(environ: Mapping[str, str], name: str) -> bool | None:
    """Boolean env var: None when unset. Raises ValueError for anything not true/false-like."""
    if name not in environ:
        return None
    value = environ[name].strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    msg = f"environment variable {name} has invalid boolean value {environ[name]!r}"
    raise ValueError(msg)


def parse_env_list(environ: Mapping[str, str], name: str) -> list[str] | None:
    """Whitespace-separated list env var: None when unset."""
    if name not in environ:
        return None
    return environ[name].split()


def target_env_key(triple: str, key: str) -> str:
    """CROSS_TARGET_<TRIPLE>_<KEY> (e.g. aarch64-unknown-linux-gnu, XARGO -> CROSS_TARGET_AARCH64_UNKNOWN_LINUX_GNU_XARGO)."""
    t = re.sub(r"[^A-Za-z0-9]", "_", triple).upper()
    return f"CROSS_TARGET_{t}_{key}"

