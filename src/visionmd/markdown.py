# src/visionmd/markdown.py
from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Sequence, Union

from .exceptions import FileWriteError

logger = logging.getLogger("visionmd")

EMPTY_PAGE_PLACEHOLDER = "_(This page contains no text)_"
PAGE_SEPARATOR = "---"


def compose_markdown(pages: Sequence[str]) -> str:
    """
    Render page texts as one Markdown document.

    Every page gets a ``# Page N`` heading; pages are separated by a
    horizontal rule. Pure function of its input.
    """
    lines: List[str] = []
    last = len(pages) - 1
    for i, raw in enumerate(pages):
        text = (raw or "").strip()
        lines.append(f"# Page {i + 1}")
        lines.append("")
        lines.append(text if text else EMPTY_PAGE_PLACEHOLDER)
        lines.append("")
        if i < last:
            lines.append(PAGE_SEPARATOR)
            lines.append("")
    return "\n".join(lines)


def output_path_for(source: Union[str, Path], output_dir: Union[str, Path]) -> Path:
    """<output_dir>/<source name with its extension replaced by .md>"""
    return Path(output_dir) / (Path(source).stem + ".md")


def save_markdown(content: str, output_path: Union[str, Path]) -> Path:
    out = Path(output_path)
    logger.info("Saving Markdown to %s", out)
    try:
        out.parent.mkdir(parents=True, exist_ok=True)
        with open(out, "w", encoding="utf-8") as f:
            f.write(content)
    except OSError as e:
        raise FileWriteError(f"Failed to write Markdown file {out}", details=str(e)) from e
    return out
