# src/visionmd/page_range.py
from __future__ import annotations

import logging
import re
from pathlib import PurePosixPath
from typing import List, Optional, Sequence, Tuple, Union
from os import PathLike

logger = logging.getLogger("visionmd")

# Vision writes shards as e.g. output-1-to-100.json
_PAGE_RANGE_RE = re.compile(r"-(\d+)-to-(\d+)\D*\.json$", re.IGNORECASE)


def parse_page_range(name: Union[str, PathLike]) -> Optional[Tuple[int, int]]:
    """Return (start, end) from a result file name, or None if it does not match."""
    base = PurePosixPath(str(name).replace("\\", "/")).name
    m = _PAGE_RANGE_RE.search(base)
    if not m:
        return None
    return int(m.group(1)), int(m.group(2))


def start_page(name: Union[str, PathLike]) -> int:
    rng = parse_page_range(name)
    return rng[0] if rng else 0


def sort_result_files(paths: Sequence) -> List:
    """
    Sort result files ascending by start page.
    Names without a page range sort first. Ordering is best effort:
    if anything goes wrong the input order is returned unchanged.
    """
    try:
        logger.info("Sorting %d result files by page range", len(paths))
        ordered = sorted(paths, key=start_page)
        return ordered
    except Exception as e:
        logger.warning("Could not sort result files, keeping original order, %s", e)
        return list(paths)
