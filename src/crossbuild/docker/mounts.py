"""Host path translation when crossbuild itself runs inside a container (docker-in-docker)."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping, Sequence
from pathlib import Path, PurePosixPath

from crossbuild.errors import CommandError
from crossbuild.helpers import run_and_get_stdout

log = logging.getLogger(__name__)


class MountFinder:
    """Maps paths inside this container to the paths the outer engine sees."""

    def __init__(self, mounts: Sequence[tuple[Path, Path]] = ()):
        # (destination inside this container, source on the engine host), longest destination first
        self.mounts = sorted(mounts, key=lambda m: len(m[0].parts), reverse=True)

    @classmethod
    def detect(
        cls,
        engine: str,
        docker_in_docker: bool,
        environ: Mapping[str, str],
        verbose: bool = False,
    ) -> MountFinder:
        if not docker_in_docker:
            return cls()
        container_id = environ.get("HOSTNAME")
        if not container_id:
            msg = "CROSS_DOCKER_IN_DOCKER is set but HOSTNAME does not name the current container"
            raise CommandError(msg)
        out = run_and_get_stdout([engine, "inspect", container_id], verbose=verbose)
        try:
            info = json.loads(out)
        except json.JSONDecodeError as e:
            msg = f"`{engine} inspect {container_id}` returned invalid JSON"
            raise CommandError(msg) from e
        raw = (info[0] if isinstance(info, list) and info else {}).get("Mounts") or []
        mounts = [
            (Path(m["Destination"]), Path(m["Source"]))
            for m in raw
            if isinstance(m, dict) and m.get("Destination") and m.get("Source")
        ]
        log.debug("docker-in-docker mounts: %s", mounts)
        return cls(mounts)

    def find_mount_path(self, path: Path) -> Path:
        """Engine-host path for path; unchanged when no mount covers it."""
        for dest, source in self.mounts:
            try:
                rel = path.relative_to(dest)
            except ValueError:
                continue
            return source / rel
        return path


def container_path(path: Path, root: Path, mount_root: PurePosixPath) -> PurePosixPath:
    """path inside the container, given root is mounted at mount_root. Paths outside root keep their absolute form."""
    try:
        rel = path.relative_to(root)
    except ValueError:
        return PurePosixPath(path.as_posix())
    return mount_root.joinpath(*rel.parts)
