"""Host and target platform triples and the predicates that route a build.

Triple matching is substring based on purpose: it follows rustc's informal
naming conventions rather than a strict grammar, so new triples from a known
family (e.g. another *-linux-* target) are routed without changes here.
"""

from __future__ import annotations

from collections.abc import Callable, Collection
from dataclasses import dataclass, field
from enum import Enum

# CROSS_COMPATIBILITY_VERSION value that restores the per-host-family policy.
LEGACY_COMPATIBILITY_VERSION = "0.2.1"


class HostFamily(Enum):
    APPLE = "apple"
    LINUX = "linux"
    WINDOWS = "windows"


class HostKind(Enum):
    """Hosts crossbuild knows about. OTHER carries the raw triple on Host."""

    X86_64_APPLE_DARWIN = "x86_64-apple-darwin"
    AARCH64_APPLE_DARWIN = "aarch64-apple-darwin"
    X86_64_UNKNOWN_LINUX_GNU = "x86_64-unknown-linux-gnu"
    AARCH64_UNKNOWN_LINUX_GNU = "aarch64-unknown-linux-gnu"
    X86_64_UNKNOWN_LINUX_MUSL = "x86_64-unknown-linux-musl"
    AARCH64_UNKNOWN_LINUX_MUSL = "aarch64-unknown-linux-musl"
    X86_64_PC_WINDOWS_MSVC = "x86_64-pc-windows-msvc"
    OTHER = "other"


HOST_FAMILIES: dict[HostKind, HostFamily | None] = {
    HostKind.X86_64_APPLE_DARWIN: HostFamily.APPLE,
    HostKind.AARCH64_APPLE_DARWIN: HostFamily.APPLE,
    HostKind.X86_64_UNKNOWN_LINUX_GNU: HostFamily.LINUX,
    HostKind.AARCH64_UNKNOWN_LINUX_GNU: HostFamily.LINUX,
    HostKind.X86_64_UNKNOWN_LINUX_MUSL: HostFamily.LINUX,
    HostKind.AARCH64_UNKNOWN_LINUX_MUSL: HostFamily.LINUX,
    HostKind.X86_64_PC_WINDOWS_MSVC: HostFamily.WINDOWS,
    HostKind.OTHER: None,
}

_KNOWN_HOSTS = {k.value: k for k in HostKind if k is not HostKind.OTHER}


@dataclass(frozen=True)
class Host:
    kind: HostKind
    triple: str

    @property
    def family(self) -> HostFamily | None:
        return HOST_FAMILIES[self.kind]

    def __str__(self) -> str:
        return self.triple


def parse_triple(triple: str) -> Host:
    """Host for triple. Unrecognized triples become HostKind.OTHER, never an error."""
    return Host(_KNOWN_HOSTS.get(triple, HostKind.OTHER), triple)


@dataclass(frozen=True)
class Target:
    """A compilation target. Equality and hashing use the triple only."""

    triple: str
    builtin: bool = field(default=True, compare=False)

    @property
    def is_builtin(self) -> bool:
        return self.builtin

    def __str__(self) -> str:
        return self.triple


def classify_target(triple: str, builtin_list: Collection[str]) -> Target:
    """BuiltIn iff triple is in builtin_list (from `rustc --print target-list`), else Custom."""
    return Target(triple, builtin=triple in builtin_list)


def target_from_host(host: Host, builtin_list: Collection[str]) -> Target:
    """Target equal to the host. Known hosts are always builtin."""
    if host.kind is not HostKind.OTHER:
        return Target(host.triple, builtin=True)
    return classify_target(host.triple, builtin_list)


# --- Target predicates ---


def _is_android(t: Target) -> bool:
    return "android" in t.triple


def _is_linux(t: Target) -> bool:
    return "linux" in t.triple and not _is_android(t)


def _is_windows(t: Target) -> bool:
    return "windows" in t.triple


def _is_bare_metal(t: Target) -> bool:
    return "thumb" in t.triple


def _is_bsd(t: Target) -> bool:
    return "bsd" in t.triple or "dragonfly" in t.triple


def _is_solaris(t: Target) -> bool:
    return "solaris" in t.triple


def _is_emscripten(t: Target) -> bool:
    return "emscripten" in t.triple


def _is_apple(t: Target) -> bool:
    return "apple" in t.triple


TARGET_PREDICATES: dict[str, Callable[[Target], bool]] = {
    "linux": _is_linux,
    "android": _is_android,
    "bare_metal": _is_bare_metal,
    "bsd": _is_bsd,
    "solaris": _is_solaris,
    "windows": _is_windows,
    "emscripten": _is_emscripten,
    "apple": _is_apple,
}

_NATIVE_ARCH_PREFIXES = ("x86_64", "i586", "i686")
_32BIT_ANDROID_PREFIXES = ("arm", "i586", "i686")


def target_is(target: Target, kind: str) -> bool:
    """Look up one predicate by name (linux, android, bare_metal, bsd, solaris, windows, emscripten, apple)."""
    return TARGET_PREDICATES[kind](target)


def needs_isolation(target: Target) -> bool:
    """True if builds for target have to run in a container. Custom targets always do."""
    return not target.is_builtin or any(p(target) for p in TARGET_PREDICATES.values())


def needs_emulation(target: Target) -> bool:
    """True if binaries for target need a QEMU/wine interpreter on an x86 host."""
    native = target.triple.startswith(_NATIVE_ARCH_PREFIXES)
    return not native and (_is_linux(target) or _is_windows(target) or _is_bare_metal(target))


def needs_privileged_isolation(target: Target) -> bool:
    """32-bit Android emulators need a privileged container."""
    return target.triple.startswith(_32BIT_ANDROID_PREFIXES) and _is_android(target)


# --- Host support gate ---


def _legacy_is_supported(host: Host, target: Target | None) -> bool:
    family = host.family
    if family is HostFamily.APPLE:
        return target is not None and needs_isolation(target)
    if family is HostFamily.LINUX:
        return needs_isolation(target) if target is not None else True
    if family is HostFamily.WINDOWS:
        if target is None:
            return False
        return target.triple != HostKind.X86_64_PC_WINDOWS_MSVC.value and needs_isolation(target)
    return False


def is_host_supported(
    host: Host,
    target: Target | None,
    compatibility_version: str | None = None,
) -> bool:
    """Whether (host, target) should be routed through a container.

    target None means "same as host". By default only an explicit target that
    needs isolation routes to a container; the host is irrelevant. Passing
    LEGACY_COMPATIBILITY_VERSION restores the old per-host-family table.
    """
    if compatibility_version == LEGACY_COMPATIBILITY_VERSION:
        return _legacy_is_supported(host, target)
    return target is not None and needs_isolation(target)
