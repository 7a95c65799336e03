"""Process-wide settings, read from the environment once at startup."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from crossbuild.errors import ConfigError
from crossbuild.helpers import parse_env_bool


@dataclass(frozen=True)
class Settings:
    """Environment-derived knobs. Nothing downstream reads os.environ directly.

    compatibility_version: CROSS_COMPATIBILITY_VERSION (legacy host/target policy)
    config_path: CROSS_CONFIG (explicit Cross.toml)
    cargo: CARGO (cargo binary, default "cargo")
    docker_in_docker: CROSS_DOCKER_IN_DOCKER
    container_engine: CROSS_CONTAINER_ENGINE (docker/podman binary)
    environ: snapshot used for CROSS_BUILD_* / CROSS_TARGET_* overrides and env passthrough
    """

    compatibility_version: str | None = None
    config_path: Path | None = None
    cargo: str = "cargo"
    docker_in_docker: bool = False
    container_engine: str | None = None
    environ: Mapping[str, str] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        env = dict(os.environ if environ is None else environ)
        try:
            dind = parse_env_bool(env, "CROSS_DOCKER_IN_DOCKER")
        except ValueError as e:
            raise ConfigError(str(e)) from e
        config_path = env.get("CROSS_CONFIG")
        return cls(
            compatibility_version=env.get("CROSS_COMPATIBILITY_VERSION"),
            config_path=Path(config_path) if config_path else None,
            cargo=env.get("CARGO") or "cargo",
            docker_in_docker=bool(dind),
            container_engine=env.get("CROSS_CONTAINER_ENGINE") or None,
            environ=env,
        )
