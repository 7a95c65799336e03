"""Cargo subcommands crossbuild treats specially."""

from __future__ import annotations

from enum import Enum


class Subcommand(Enum):
    BUILD = "build"
    CHECK = "check"
    DOC = "doc"
    RUN = "run"
    RUSTC = "rustc"
    TEST = "test"
    BENCH = "bench"
    DEB = "deb"
    CLIPPY = "clippy"
    METADATA = "metadata"
    OTHER = "other"

    @classmethod
    def classify(cls, verb: str) -> Subcommand:
        """Exact-match lookup including cargo's short aliases; anything else is OTHER."""
        return _ALIASES.get(verb, cls.OTHER)

    @property
    def needs_isolation(self) -> bool:
        return self is not Subcommand.OTHER

    @property
    def needs_emulation_support(self) -> bool:
        """Subcommands that execute target binaries."""
        return self in (Subcommand.RUN, Subcommand.TEST, Subcommand.BENCH)

    @property
    def needs_target_in_command(self) -> bool:
        # cargo metadata is workspace-wide; --target would narrow it.
        return self is not Subcommand.METADATA


_ALIASES: dict[str, Subcommand] = {
    "b": Subcommand.BUILD,
    "build": Subcommand.BUILD,
    "c": Subcommand.CHECK,
    "check": Subcommand.CHECK,
    "doc": Subcommand.DOC,
    "r": Subcommand.RUN,
    "run": Subcommand.RUN,
    "rustc": Subcommand.RUSTC,
    "t": Subcommand.TEST,
    "test": Subcommand.TEST,
    "bench": Subcommand.BENCH,
    "deb": Subcommand.DEB,
    "clippy": Subcommand.CLIPPY,
    "metadata": Subcommand.METADATA,
}
