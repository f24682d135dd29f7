# src/visionmd/geometry.py
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

import numpy as np

# Ruby glyphs are usually under half the body-text height.
RUBY_HEIGHT_RATIO = 0.6


def _vertices(node: Dict[str, Any]) -> List[Dict[str, Any]]:
    """
    Pixel vertices when present, normalized vertices otherwise.
    The batch API reports normalizedVertices for PDF/TIFF input.
    """
    box = node.get("boundingBox") or {}
    verts = box.get("vertices")
    if verts:
        return verts
    return box.get("normalizedVertices") or []


def symbol_height(symbol: Dict[str, Any]) -> float:
    """
    Vertical span of a symbol's bounding polygon.
    Uses y coordinates only so it works for horizontal and vertical writing.
    Returns 0 when fewer than four vertices are available.
    """
    verts = _vertices(symbol)
    if len(verts) < 4:
        return 0
    ys = [v.get("y") or 0 for v in verts]
    return max(ys) - min(ys)


def median(values: Iterable[float]) -> float:
    """Median of the values, 0 for an empty input."""
    arr = np.asarray(list(values), dtype=float)
    if arr.size == 0:
        return 0.0
    return float(np.median(arr))


def block_symbols(block: Dict[str, Any]):
    for paragraph in block.get("paragraphs") or []:
        for word in paragraph.get("words") or []:
            for symbol in word.get("symbols") or []:
                yield symbol


def ruby_threshold(block: Dict[str, Any], ratio: float = RUBY_HEIGHT_RATIO) -> float:
    """Height below which a glyph in this block is considered ruby."""
    heights = [h for h in (symbol_height(s) for s in block_symbols(block)) if h > 0]
    return median(heights) * ratio


def is_ruby(height: float, threshold: Optional[float]) -> bool:
    # zero height means no usable geometry, such glyphs are kept
    if threshold is None:
        return False
    return 0 < height < threshold
