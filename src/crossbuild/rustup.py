"""rustup wrappers: toolchains, targets and components."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from crossbuild.errors import CommandError, ToolchainError
from crossbuild.helpers import run_and_get_stdout, run_checked
from crossbuild.platform import Target

log = logging.getLogger(__name__)

_INSTALLED_MARKERS = ("(installed)", "(default)")


@dataclass(frozen=True)
class AvailableTargets:
    """Output of `rustup target list`: what can be installed and what already is."""

    default: str | None
    installed: frozenset[str]
    not_installed: frozenset[str]

    def contains(self, target: Target) -> bool:
        t = target.triple
        return t == self.default or t in self.installed or t in self.not_installed

    def is_installed(self, target: Target) -> bool:
        return target.triple == self.default or target.triple in self.installed

    def __contains__(self, target: Target) -> bool:
        return self.contains(target)


def parse_toolchain_list(text: str) -> list[str]:
    """Toolchain names from `rustup toolchain list` (markers like "(default)" dropped)."""
    return [line.split()[0] for line in text.splitlines() if line.strip()]


def parse_target_list(text: str) -> AvailableTargets:
    default = None
    installed: set[str] = set()
    not_installed: set[str] = set()
    for line in text.splitlines():
        parts = line.split()
        if not parts:
            continue
        triple = parts[0]
        if "(default)" in parts:
            default = triple
        elif "(installed)" in parts:
            installed.add(triple)
        else:
            not_installed.add(triple)
    return AvailableTargets(default, frozenset(installed), frozenset(not_installed))


def installed_toolchains(verbose: bool = False) -> list[str]:
    try:
        out = run_and_get_stdout(["rustup", "toolchain", "list"], verbose=verbose)
    except CommandError as e:
        msg = "couldn't list installed toolchains"
        raise ToolchainError(msg) from e
    return parse_toolchain_list(out)


def install_toolchain(toolchain: str, verbose: bool = False) -> None:
    log.debug("Installing toolchain %s", toolchain)
    try:
        run_checked(["rustup", "toolchain", "add", toolchain, "--profile", "minimal"], verbose=verbose)
    except CommandError as e:
        msg = f"couldn't install toolchain `{toolchain}`"
        raise ToolchainError(msg) from e


def available_targets(toolchain: str, verbose: bool = False) -> AvailableTargets:
    try:
        out = run_and_get_stdout(["rustup", "target", "list", "--toolchain", toolchain], verbose=verbose)
    except CommandError as e:
        msg = f"couldn't list targets for toolchain `{toolchain}`"
        raise ToolchainError(msg) from e
    return parse_target_list(out)


def install_target(target: Target, toolchain: str, verbose: bool = False) -> None:
    try:
        run_checked(
            ["rustup", "target", "add", target.triple, "--toolchain", toolchain],
            verbose=verbose,
        )
    except CommandError as e:
        msg = f"couldn't install `std` for {target.triple}"
        raise ToolchainError(msg) from e


def component_is_installed(component: str, toolchain: str, verbose: bool = False) -> bool:
    try:
        out = run_and_get_stdout(["rustup", "component", "list", "--toolchain", toolchain], verbose=verbose)
    except CommandError as e:
        msg = f"couldn't list components for toolchain `{toolchain}`"
        raise ToolchainError(msg) from e
    for line in out.splitlines():
        # component lines look like "rust-src (installed)" or "clippy-x86_64-unknown-linux-gnu"
        if line.startswith(component) and any(m in line for m in _INSTALLED_MARKERS):
            return True
    return False


def install_component(component: str, toolchain: str, verbose: bool = False) -> None:
    try:
        run_checked(["rustup", "component", "add", component, "--toolchain", toolchain], verbose=verbose)
    except CommandError as e:
        msg = f"couldn't install the `{component}` component"
        raise ToolchainError(msg) from e
