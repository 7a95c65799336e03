"""Cross.toml parsing.

Layout:
    [build]                  xargo (bool), target (str)
    [build.env]              volumes, passthrough (lists of env var names)
    [target.<triple>]        xargo (bool), image (str), runner (str)
    [target.<triple>.env]    volumes, passthrough
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from typing import Any

from crossbuild.errors import ConfigError


@dataclass(frozen=True)
class EnvConfig:
    volumes: tuple[str, ...] | None = None
    passthrough: tuple[str, ...] | None = None


@dataclass(frozen=True)
class BuildConfig:
    xargo: bool | None = None
    target: str | None = None
    env: EnvConfig = field(default_factory=EnvConfig)


@dataclass(frozen=True)
class TargetConfig:
    xargo: bool | None = None
    image: str | None = None
    runner: str | None = None
    env: EnvConfig = field(default_factory=EnvConfig)


@dataclass(frozen=True)
class CrossToml:
    build: BuildConfig = field(default_factory=BuildConfig)
    targets: dict[str, TargetConfig] = field(default_factory=dict, hash=False)


def _take(table: dict[str, Any], key: str, kind: type, where: str) -> Any:
    value = table.pop(key, None)
    if value is not None and not isinstance(value, kind):
        msg = f"`{where}.{key}` must be a {kind.__name__}, got {type(value).__name__}"
        raise ConfigError(msg)
    return value


def _take_str_list(table: dict[str, Any], key: str, where: str) -> tuple[str, ...] | None:
    value = _take(table, key, list, where)
    if value is None:
        return None
    if not all(isinstance(v, str) for v in value):
        msg = f"`{where}.{key}` must be a list of strings"
        raise ConfigError(msg)
    return tuple(value)


def _unused(table: dict[str, Any], where: str) -> set[str]:
    return {f"{where}.{k}" for k in table}


def _parse_env(raw: Any, where: str, unused: set[str]) -> EnvConfig:
    if raw is None:
        return EnvConfig()
    if not isinstance(raw, dict):
        msg = f"`{where}` must be a table"
        raise ConfigError(msg)
    table = dict(raw)
    env = EnvConfig(
        volumes=_take_str_list(table, "volumes", where),
        passthrough=_take_str_list(table, "passthrough", where),
    )
    unused |= _unused(table, where)
    return env


def _parse_build(raw: Any, unused: set[str]) -> BuildConfig:
    if raw is None:
        return BuildConfig()
    if not isinstance(raw, dict):
        msg = "`build` must be a table"
        raise ConfigError(msg)
    table = dict(raw)
    build = BuildConfig(
        xargo=_take(table, "xargo", bool, "build"),
        target=_take(table, "target", str, "build"),
        env=_parse_env(table.pop("env", None), "build.env", unused),
    )
    unused |= _unused(table, "build")
    return build


def _parse_target(triple: str, raw: Any, unused: set[str]) -> TargetConfig:
    where = f"target.{triple}"
    if not isinstance(raw, dict):
        msg = f"`{where}` must be a table"
        raise ConfigError(msg)
    table = dict(raw)
    cfg = TargetConfig(
        xargo=_take(table, "xargo", bool, where),
        image=_take(table, "image", str, where),
        runner=_take(table, "runner", str, where),
        env=_parse_env(table.pop("env", None), f"{where}.env", unused),
    )
    unused |= _unused(table, where)
    return cfg


def parse_cross_toml(text: str) -> tuple[CrossToml, set[str]]:
    """Parse Cross.toml text. Returns (config, dotted paths of keys that were not recognized)."""
    try:
        data = tomllib.loads(text)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(str(e)) from e
    unused: set[str] = set()
    build = _parse_build(data.pop("build", None), unused)
    raw_targets = data.pop("target", None) or {}
    if not isinstance(raw_targets, dict):
        msg = "`target` must be a table"
        raise ConfigError(msg)
    targets = {t: _parse_target(t, raw, unused) for t, raw in raw_targets.items()}
    unused |= set(data)
    return CrossToml(build=build, targets=targets), unused
