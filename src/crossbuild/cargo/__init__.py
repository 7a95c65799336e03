"""cargo integration: subcommand classification, project metadata, pass-through execution."""

from .metadata import Package, ProjectMetadata, fetch_metadata, parse_metadata
from .passthrough import run as run_passthrough
from .subcommand import Subcommand

__all__ = [
    "Package",
    "ProjectMetadata",
    "Subcommand",
    "fetch_metadata",
    "parse_metadata",
    "run_passthrough",
]
