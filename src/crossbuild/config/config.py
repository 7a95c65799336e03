"""Layered configuration: CROSS_* environment variables override Cross.toml."""

from __future__ import annotations

import logging
from collections.abc import Collection, Mapping
from pathlib import Path

from crossbuild.config.cross_toml import CrossToml, TargetConfig, parse_cross_toml
from crossbuild.config.settings import Settings
from crossbuild.errors import ConfigError
from crossbuild.helpers import parse_env_bool, parse_env_list, target_env_key
from crossbuild.platform import Target, classify_target

log = logging.getLogger(__name__)

CONFIG_FILE_NAME = "Cross.toml"


def _normalize_triple(triple: str) -> str:
    return triple.replace("-", "").replace("_", "").lower()


class Config:
    """Per-run configuration for one workspace."""

    def __init__(self, toml: CrossToml | None = None, environ: Mapping[str, str] | None = None):
        self.toml = toml
        self.environ: Mapping[str, str] = environ if environ is not None else {}

    def _target_toml(self, target: Target) -> TargetConfig | None:
        if self.toml is None:
            return None
        return self.toml.targets.get(target.triple)

    def _env_bool(self, name: str) -> bool | None:
        try:
            return parse_env_bool(self.environ, name)
        except ValueError as e:
            raise ConfigError(str(e)) from e

    def xargo(self, target: Target) -> bool | None:
        """Explicit xargo choice for target, or None when nothing is configured."""
        for value in (
            self._env_bool(target_env_key(target.triple, "XARGO")),
            getattr(self._target_toml(target), "xargo", None),
            self._env_bool("CROSS_BUILD_XARGO"),
            self.toml.build.xargo if self.toml is not None else None,
        ):
            if value is not None:
                return value
        return None

    def image(self, target: Target) -> str | None:
        env = self.environ.get(target_env_key(target.triple, "IMAGE"))
        if env:
            return env
        return getattr(self._target_toml(target), "image", None)

    def runner(self, target: Target) -> str | None:
        env = self.environ.get(target_env_key(target.triple, "RUNNER"))
        if env:
            return env
        return getattr(self._target_toml(target), "runner", None)

    def target(self, builtin_list: Collection[str]) -> Target | None:
        """Default target: CROSS_BUILD_TARGET, else [build] target."""
        triple = self.environ.get("CROSS_BUILD_TARGET") or (
            self.toml.build.target if self.toml is not None else None
        )
        if not triple:
            return None
        return classify_target(triple, builtin_list)

    def _env_list(self, target: Target, attr: str) -> list[str]:
        key = attr.upper()
        build_env = parse_env_list(self.environ, f"CROSS_BUILD_ENV_{key}")
        if build_env is None and self.toml is not None:
            build_env = list(getattr(self.toml.build.env, attr) or [])
        target_env = parse_env_list(self.environ, target_env_key(target.triple, f"ENV_{key}"))
        if target_env is None:
            tcfg = self._target_toml(target)
            target_env = list(getattr(tcfg.env, attr) or []) if tcfg is not None else []
        return (build_env or []) + target_env

    def env_passthrough(self, target: Target) -> list[str]:
        """Names of host env vars forwarded into the container."""
        return self._env_list(target, "passthrough")

    def env_volumes(self, target: Target) -> list[str]:
        """Names of host env vars whose values are paths to mount into the container."""
        return self._env_list(target, "volumes")

    def confusable_target(self, target: Target) -> None:
        """Warn when Cross.toml mentions a target that differs from target only by case or separators."""
        if self.toml is None:
            return
        norm = _normalize_triple(target.triple)
        for mentioned in self.toml.targets:
            if mentioned != target.triple and _normalize_triple(mentioned) == norm:
                log.warning(
                    'A target named "%s" is mentioned in the Cross configuration, '
                    'but the current specified target is "%s". '
                    "Is the target misspelled in the Cross configuration?",
                    mentioned,
                    target.triple,
                )


def load_cross_toml(workspace_root: Path, settings: Settings) -> CrossToml | None:
    """Parse CROSS_CONFIG or <workspace_root>/Cross.toml; None when there is no file."""
    path = settings.config_path or workspace_root / CONFIG_FILE_NAME
    if not path.is_file():
        if (workspace_root / CONFIG_FILE_NAME.lower()).is_file():
            log.warning(
                "There's a file named cross.toml, instead of Cross.toml. "
                "You may want to rename it, or it won't be considered."
            )
        return None
    try:
        text = path.read_text()
    except OSError as e:
        msg = f"could not read file `{path}`"
        raise ConfigError(msg) from e
    try:
        toml, unused = parse_cross_toml(text)
    except ConfigError as e:
        msg = f"failed to parse file `{path}` as TOML"
        raise ConfigError(msg) from e
    for key in sorted(unused):
        log.warning("Found unused key `%s` in %s", key, path)
    return toml


def load_config(workspace_root: Path, settings: Settings) -> Config:
    return Config(load_cross_toml(workspace_root, settings), settings.environ)
