"""Project discovery via `cargo metadata --format-version 1`."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from crossbuild.errors import MetadataParseError
from crossbuild.helpers import format_command, run_and_get_output
from crossbuild.platform import Target

log = logging.getLogger(__name__)

METADATA_FORMAT_VERSION = "1"

# cargo's message when neither cwd nor its parents hold a manifest.
MISSING_MANIFEST_MARKER = "could not find `Cargo.toml`"


@dataclass(frozen=True)
class Package:
    id: str
    manifest_path: Path
    source: str | None = None


@dataclass(frozen=True)
class ProjectMetadata:
    workspace_root: Path
    target_directory: Path
    packages: tuple[Package, ...] = ()
    workspace_members: tuple[str, ...] = field(default_factory=tuple)

    def path_dependencies(self) -> Iterator[Path]:
        """Directories of local path dependencies, in package order.

        A package counts when it is not a workspace member and has no source.
        Packages inside the same workspace directory that are not declared
        members are not filtered out.
        """
        members = set(self.workspace_members)
        for p in self.packages:
            if p.id in members or p.source is not None:
                continue
            yield p.manifest_path.parent


def _package_from_json(raw: dict[str, Any]) -> Package:
    return Package(
        id=raw["id"],
        manifest_path=Path(raw["manifest_path"]),
        source=raw.get("source"),
    )


def parse_metadata(
    data: dict[str, Any],
    cwd: Path,
    target_dir: Path | None = None,
) -> ProjectMetadata:
    """Build ProjectMetadata from decoded JSON. A relative target_dir is resolved against cwd, not the workspace root."""
    if target_dir is not None:
        target_directory = target_dir if target_dir.is_absolute() else cwd / target_dir
    else:
        target_directory = Path(data["target_directory"])
    return ProjectMetadata(
        workspace_root=Path(data["workspace_root"]),
        target_directory=target_directory,
        packages=tuple(_package_from_json(p) for p in data.get("packages") or []),
        workspace_members=tuple(data.get("workspace_members") or []),
    )


def fetch_metadata(
    cwd: Path,
    manifest_path: Path | None = None,
    target_dir: Path | None = None,
    target: Target | None = None,
    *,
    cargo: str = "cargo",
    verbose: bool = False,
    no_deps: bool | None = None,
) -> ProjectMetadata | None:
    """Run `cargo metadata` in cwd. Returns None when cwd is not inside a cargo project.

    no_deps defaults to True when no manifest path or target context is
    given (lightweight self-introspection). target narrows the dependency
    graph with --filter-platform. Raises MetadataParseError when cargo
    fails for any reason other than a missing manifest, or succeeds but
    prints something other than JSON.
    """
    cmd: list[str | Path] = [cargo, "metadata", "--format-version", METADATA_FORMAT_VERSION]
    if manifest_path is not None:
        cmd += ["--manifest-path", manifest_path]
    if no_deps is None:
        no_deps = manifest_path is None and target_dir is None and target is None
    if no_deps:
        cmd.append("--no-deps")
    if target is not None:
        cmd += ["--filter-platform", target.triple]

    r = run_and_get_output(cmd, verbose=verbose, cwd=cwd)
    if r.returncode != 0:
        stderr = (r.stderr or "").strip()
        if MISSING_MANIFEST_MARKER in stderr:
            log.debug("No cargo manifest found from %s", cwd)
            return None
        msg = f"`{format_command(cmd)}` failed with exit code {r.returncode}\n{stderr}"
        raise MetadataParseError(msg, stderr=r.stderr or "")
    stdout = (r.stdout or "").strip()
    if not stdout:
        return None
    try:
        data = json.loads(stdout)
    except json.JSONDecodeError as e:
        msg = f"`{format_command(cmd)}` returned invalid JSON: {e}\n{(r.stderr or '').strip()}"
        raise MetadataParseError(msg, stderr=r.stderr or "") from e
    if data is None:
        return None
    return parse_metadata(data, cwd, target_dir)
