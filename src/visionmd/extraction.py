# src/visionmd/extraction.py
"""
Turns Vision API result files into one text string per recognized page.

Result files hold ``{"responses": [...]}`` where every response entry is one
page. Baseline mode uses the flattened ``fullTextAnnotation.text``; detailed
mode walks page -> block -> paragraph -> word -> symbol so ruby glyphs can be
dropped and line breaks re-flowed.
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Sequence, Union

from .exceptions import ResultParseError, TextExtractionError
from .geometry import is_ruby, ruby_threshold, symbol_height

logger = logging.getLogger("visionmd")

SPACE_BREAKS = frozenset({"SPACE", "SURE_SPACE"})
LINE_BREAKS = frozenset({"LINE_BREAK", "EOL_SURE_SPACE"})


def load_result_files(paths: Sequence[Union[str, Path]]) -> List[Dict[str, Any]]:
    """
    Read result JSON files in the given order.
    A file that cannot be parsed is skipped with a warning; the call fails
    only when none of them could be read.
    """
    logger.info("Parsing %d result files", len(paths))
    documents: List[Dict[str, Any]] = []
    for fp in paths:
        try:
            with open(fp, "r", encoding="utf-8") as f:
                doc = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("Skipping unreadable result file %s, %s", fp, e)
            continue
        if not isinstance(doc, dict) or not isinstance(doc.get("responses"), list):
            logger.warning("Skipping result file without a responses list, %s", fp)
            continue
        documents.append(doc)
        logger.debug("Parsed result file %s", fp)

    if not documents:
        raise ResultParseError("No valid result files were found", details=[str(p) for p in paths])

    logger.info("Parsed %d of %d result files", len(documents), len(paths))
    return documents


def count_pages(documents: Sequence[Dict[str, Any]]) -> int:
    return sum(len(doc.get("responses") or []) for doc in documents)


def _paragraph_text(paragraph: Dict[str, Any], threshold, normalize: bool) -> str:
    parts: List[str] = []
    for word in paragraph.get("words") or []:
        for symbol in word.get("symbols") or []:
            if not is_ruby(symbol_height(symbol), threshold):
                parts.append(symbol.get("text", ""))

            brk = (((symbol.get("property") or {}).get("detectedBreak")) or {}).get("type")
            if brk in SPACE_BREAKS:
                parts.append(" ")
            elif brk in LINE_BREAKS and not normalize:
                parts.append("\n")
    return "".join(parts)


def _detailed_text(pages: List[Dict[str, Any]], remove_ruby: bool, normalize: bool) -> str:
    paragraphs: List[str] = []
    for page in pages:
        for block in page.get("blocks") or []:
            threshold = None
            if remove_ruby:
                threshold = ruby_threshold(block)
                logger.debug("Block ruby threshold %.2f", threshold)

            for paragraph in block.get("paragraphs") or []:
                text = _paragraph_text(paragraph, threshold, normalize)
                if not text.strip():
                    continue
                paragraphs.append(text.strip() if normalize else text.rstrip("\n"))

    # blank line between paragraphs tells a Markdown renderer they are real breaks
    return ("\n\n" if normalize else "\n").join(paragraphs)


def _page_text(item: Dict[str, Any], remove_ruby: bool, normalize: bool) -> str:
    if item.get("error"):
        logger.warning("OCR reported an error for a page, %s", (item["error"] or {}).get("message", item["error"]))
        return ""
    annotation = item.get("fullTextAnnotation")
    if not annotation:
        return ""
    if (remove_ruby or normalize) and annotation.get("pages"):
        return _detailed_text(annotation["pages"], remove_ruby, normalize)
    return annotation.get("text") or ""


def extract_text(
    documents: Sequence[Dict[str, Any]],
    remove_ruby: bool = False,
    normalize_line_breaks: bool = False,
) -> List[str]:
    """
    Return one text per page, in document order.

    Args:
        documents: Parsed result files, already sorted by page range.
        remove_ruby: Drop glyphs shorter than 0.6 x the block's median height.
        normalize_line_breaks: Drop visual line wraps and separate paragraphs
            with a blank line.
    """
    logger.info(
        "Extracting text, ruby removal %s, line break normalization %s",
        "on" if remove_ruby else "off",
        "on" if normalize_line_breaks else "off",
    )
    pages: List[str] = []
    try:
        for doc in documents:
            for item in doc.get("responses") or []:
                pages.append(_page_text(item or {}, remove_ruby, normalize_line_breaks))
    except (AttributeError, TypeError) as e:
        raise TextExtractionError("Failed to extract text from OCR results", details=str(e)) from e

    logger.info("Extracted text for %d pages", len(pages))
    return pages
