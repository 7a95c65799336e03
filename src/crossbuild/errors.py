"""Exception hierarchy. Everything the CLI reports as fatal derives from CrossError."""

from __future__ import annotations


class CrossError(RuntimeError):
    """Base class for fatal errors that abort a run before any build is invoked."""


class CommandError(CrossError):
    """A subprocess could not be spawned or exited unsuccessfully."""

    def __init__(self, msg: str, *, stderr: str = "") -> None:
        super().__init__(msg)
        self.stderr = stderr


class MetadataParseError(CrossError):
    """`cargo metadata` failed on a project, or printed something that is not valid JSON."""

    def __init__(self, msg: str, *, stderr: str = "") -> None:
        super().__init__(msg)
        self.stderr = stderr


class ConfigError(CrossError):
    """Cross.toml could not be read or parsed, or an env override is malformed."""


class ToolchainError(CrossError):
    """rustup failed to install or inspect a toolchain, target or component."""


class ImageNotFoundError(CrossError):
    """No container image is configured or published for the target."""


class EmulationError(CrossError):
    """binfmt_misc state could not be read, or interpreter registration failed."""
