"""Main CLI entry point: `crossbuild [+channel] <cargo args...>`."""

from __future__ import annotations

import logging
import sys
from collections.abc import Sequence
from pathlib import Path

from crossbuild import __version__, rustc
from crossbuild.cli import args as cli_args
from crossbuild.config import Settings
from crossbuild.engine import Collaborators, Engine
from crossbuild.errors import CrossError


def _configure_logging(argv: Sequence[str]) -> None:
    level = logging.DEBUG if "-vv" in argv else logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s", stream=sys.stderr)


def _print_error(e: BaseException) -> None:
    print(f"❌ error: {e}", file=sys.stderr)
    cause = e.__cause__
    while cause is not None:
        print(f"   caused by: {cause}", file=sys.stderr)
        cause = cause.__cause__


def run(argv: Sequence[str], cwd: Path | None = None, settings: Settings | None = None) -> int:
    """Run one invocation and return the exit code of cargo (host or container)."""
    settings = settings or Settings.from_env()
    builtin_targets = rustc.target_list()
    args = cli_args.parse(argv, builtin_targets, docker_in_docker=settings.docker_in_docker)
    if args.wants_version:
        print(f"crossbuild {__version__}")
    try:
        version_meta = rustc.version_meta(args.verbose)
    except CrossError as e:
        msg = "couldn't fetch the `rustc` version"
        raise CrossError(msg) from e
    engine = Engine(
        settings,
        version_meta.host,
        builtin_targets,
        version_meta,
        Collaborators.default(settings),
        cwd or Path.cwd(),
    )
    return engine.run(args)


def main() -> None:
    """Main CLI entry point."""
    argv = sys.argv[1:]
    _configure_logging(argv)
    try:
        rc = run(argv)
    except CrossError as e:
        _print_error(e)
        sys.exit(1)
    sys.exit(rc)


if __name__ == "__main__":
    main()
