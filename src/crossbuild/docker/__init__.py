"""Container runtime: image selection, `docker run`, binfmt_misc registration."""

from .image import DEFAULT_IMAGE_REPOSITORY, DEFAULT_IMAGE_TAG, PROVIDED_IMAGES, image
from .mounts import MountFinder
from .register import is_registered, register
from .run import build_command, container_engine, rewrite_target_dir
from .run import run as run_in_container

__all__ = [
    "DEFAULT_IMAGE_REPOSITORY",
    "DEFAULT_IMAGE_TAG",
    "PROVIDED_IMAGES",
    "MountFinder",
    "build_command",
    "container_engine",
    "image",
    "is_registered",
    "register",
    "rewrite_target_dir",
    "run_in_container",
]
