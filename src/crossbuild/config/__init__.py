"""Configuration: environment settings, Cross.toml, and the layered per-run Config."""

from .config import CONFIG_FILE_NAME, Config, load_config, load_cross_toml
from .cross_toml import BuildConfig, CrossToml, EnvConfig, TargetConfig, parse_cross_toml
from .settings import Settings

__all__ = [
    "CONFIG_FILE_NAME",
    "BuildConfig",
    "Config",
    "CrossToml",
    "EnvConfig",
    "Settings",
    "TargetConfig",
    "load_config",
    "load_cross_toml",
    "parse_cross_toml",
]
