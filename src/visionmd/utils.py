# src/visionmd/utils.py
from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Tuple, Union

from PIL import Image
from slugify import slugify

from .exceptions import UnsupportedFormatError

logger = logging.getLogger("visionmd")


def safe_fname(name: str, fallback: str = "file") -> str:
    """
    Create a filesystem safe name, preserve extension when present.
    """
    name = (name or "").strip() or fallback
    if "." in name:
        base, ext = name.rsplit(".", 1)
        return f"{slugify(base)[:100] or fallback}.{ext}"
    return slugify(name)[:100] or fallback


def remove_dir(path: Union[str, Path]) -> bool:
    """
    Remove a directory tree. Failures are logged, never raised.
    Returns True when the directory is gone afterwards.
    """
    p = Path(path)
    try:
        shutil.rmtree(p)
        logger.info("Removed temp directory %s", p)
        return True
    except FileNotFoundError:
        return True
    except OSError as e:
        logger.warning("Failed to remove temp directory %s, %s", p, e)
        return False


def format_elapsed(elapsed_ms: float) -> str:
    minutes = int(elapsed_ms // 60000)
    seconds = int((elapsed_ms % 60000) // 1000)
    return f"{minutes}m{seconds:02d}s"


def verify_image(path: Union[str, Path]) -> Tuple[str, Tuple[int, int]]:
    """
    Open a raster image with Pillow to make sure it is readable.
    Returns (format, (width, height)).
    """
    p = Path(path)
    try:
        with Image.open(p) as im:
            fmt, size = im.format, im.size
            im.verify()
    except (OSError, SyntaxError) as e:
        raise UnsupportedFormatError(f"Not a readable image, {p.name}", details=str(e)) from e
    return fmt, size
