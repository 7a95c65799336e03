"""Pass-through mode: run cargo on the host with the user's arguments."""

from __future__ import annotations

from collections.abc import Sequence

from crossbuild.helpers import run_and_get_status


def run(args: Sequence[str], verbose: bool = False, *, cargo: str = "cargo") -> int:
    """Run `cargo *args` with inherited stdio and return its exit code. Spawn failure raises CommandError."""
    return run_and_get_status([cargo, *args], verbose=verbose)
