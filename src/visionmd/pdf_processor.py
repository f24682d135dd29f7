# src/visionmd/pdf_processor.py
from __future__ import annotations

import logging
import tempfile
import time
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Union

import fitz  # PyMuPDF

from .exceptions import UnsupportedFormatError
from .utils import safe_fname

logger = logging.getLogger("visionmd")


# --- Step 1, interface ---
class BasePDFProcessor(ABC):
    """
    Interface for any PDF processing engine.
    """

    @abstractmethod
    def page_count(self, file_path: Path) -> int:
        raise NotImplementedError

    @abstractmethod
    def count_spread_pages(self, file_path: Path) -> int:
        """Number of pages wider than they are tall."""
        raise NotImplementedError

    @abstractmethod
    def split_spreads(self, file_path: Path, output_path: Path, right_to_left: bool = True) -> int:
        """
        Write a copy of file_path to output_path where every spread page is
        replaced by its two halves. Returns the output page count.
        """
        raise NotImplementedError


# --- Step 2, concrete implementation with PyMuPDF ---
class PyMuPDFProcessor(BasePDFProcessor):
    """PDF processor that uses PyMuPDF."""

    @staticmethod
    def _is_spread(page: "fitz.Page") -> bool:
        mb = page.mediabox
        return mb.width > mb.height

    def page_count(self, file_path: Path) -> int:
        with fitz.open(file_path) as doc:
            return len(doc)

    def count_spread_pages(self, file_path: Path) -> int:
        with fitz.open(file_path) as doc:
            return sum(1 for page in doc if self._is_spread(page))

    def split_spreads(self, file_path: Path, output_path: Path, right_to_left: bool = True) -> int:
        """
        Duplicate each spread page and give each copy half of the media box.
        Copying whole pages keeps text, images, annotations and links; only
        the visible region changes.
        """
        with fitz.open(file_path) as src, fitz.open() as out:
            logger.info("Source page count, %d", len(src))
            for i, page in enumerate(src):
                if not self._is_spread(page):
                    out.insert_pdf(src, from_page=i, to_page=i)
                    logger.debug("Page %d, single page, copied as is", i + 1)
                    continue

                mb = page.mediabox
                mid = mb.x0 + mb.width / 2
                left = fitz.Rect(mb.x0, mb.y0, mid, mb.y1)
                right = fitz.Rect(mid, mb.y0, mb.x1, mb.y1)
                halves = (right, left) if right_to_left else (left, right)

                for half in halves:
                    out.insert_pdf(src, from_page=i, to_page=i)
                    new_page = out[-1]
                    # set_mediabox also resets the crop box to the same region
                    new_page.set_mediabox(half)
                logger.debug("Page %d, spread, split into 2 pages", i + 1)

            total = len(out)
            output_path.parent.mkdir(parents=True, exist_ok=True)
            out.save(output_path, garbage=3, deflate=True)
        logger.info("Split page count, %d", total)
        return total


# --- Step 3, factory ---
def get_pdf_processor(engine_name: str = "pymupdf") -> BasePDFProcessor:
    """
    Create a PDF processor by name.
    """
    name = (engine_name or "").lower()
    if name == "pymupdf":
        return PyMuPDFProcessor()
    raise ValueError(f"Unknown PDF engine, '{engine_name}'. Supported engines, ['pymupdf']")


# --- Step 4, module level helpers ---
def split_spread_pdf(
    input_path: Union[str, Path],
    right_to_left: bool = True,
    temp_dir: Optional[Union[str, Path]] = None,
    engine_name: str = "pymupdf",
) -> Path:
    """
    Split spread pages of a PDF into a new temporary file.

    The original file is left untouched. The caller owns the returned file
    and must remove it, see cleanup_temp_pdf() or spread_split().
    """
    src = Path(input_path)
    logger.info("Splitting spread pages of %s", src)
    logger.info("Reading order, %s", "right to left" if right_to_left else "left to right")

    out_dir = Path(temp_dir) if temp_dir else Path(tempfile.gettempdir())
    out_path = out_dir / f"split-{int(time.time() * 1000)}-{safe_fname(src.name, 'document.pdf')}"

    processor = get_pdf_processor(engine_name)
    try:
        logger.info("Spread pages, %d", processor.count_spread_pages(src))
        processor.split_spreads(src, out_path, right_to_left=right_to_left)
    except (RuntimeError, ValueError) as e:
        # fitz.FileDataError is a RuntimeError
        cleanup_temp_pdf(out_path)
        raise UnsupportedFormatError(f"Not a readable PDF, {src.name}", details=str(e)) from e
    logger.info("Split PDF written to %s", out_path)
    return out_path


def count_spread_pages(input_path: Union[str, Path], engine_name: str = "pymupdf") -> int:
    try:
        return get_pdf_processor(engine_name).count_spread_pages(Path(input_path))
    except (RuntimeError, ValueError) as e:
        raise UnsupportedFormatError(f"Not a readable PDF, {Path(input_path).name}", details=str(e)) from e


def cleanup_temp_pdf(temp_path: Union[str, Path]) -> None:
    p = Path(temp_path)
    try:
        p.unlink()
        logger.info("Removed temp PDF %s", p)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning("Failed to remove temp PDF %s, %s", p, e)


@contextmanager
def spread_split(
    input_path: Union[str, Path],
    right_to_left: bool = True,
    temp_dir: Optional[Union[str, Path]] = None,
) -> Iterator[Path]:
    """Context manager around split_spread_pdf() that always removes the file."""
    out_path = split_spread_pdf(input_path, right_to_left=right_to_left, temp_dir=temp_dir)
    try:
        yield out_path
    finally:
        cleanup_temp_pdf(out_path)
