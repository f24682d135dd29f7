# src/visionmd/cli.py
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from queue import Queue
from threading import Thread
from typing import List, Optional

from tqdm import tqdm

from .config import AppConfig, JobOptions, load_config, save_config
from .events import EventStream
from .exceptions import ConfigurationError, VisionMDError
from .logger import DEFAULT_LOG_PATH, setup_logging
from .models import CompleteEvent, ErrorEvent, ProgressEvent
from .orchestrator import JobOrchestrator
from .pdf_processor import count_spread_pages, get_pdf_processor, split_spread_pdf

__all__ = ["run_job", "main"]

logger = logging.getLogger("visionmd")

_SUBCOMMANDS = {"run", "split", "config"}


def _coerce_config_value(cfg: AppConfig, key: str, raw: str):
    """Convert a CLI string to the type of the existing config field."""
    if key not in cfg.__dataclass_fields__:
        raise ConfigurationError(f"Unknown config key {key!r}. Known keys, {sorted(cfg.__dataclass_fields__)}")
    current = getattr(cfg, key)
    if isinstance(current, bool):
        low = raw.strip().lower()
        if low not in ("true", "false", "1", "0", "yes", "no", "on", "off"):
            raise ConfigurationError(f"{key} expects a boolean, got {raw!r}")
        return low in ("true", "1", "yes", "on")
    if isinstance(current, int):
        try:
            return int(raw)
        except ValueError:
            raise ConfigurationError(f"{key} expects an integer, got {raw!r}") from None
    if isinstance(current, Path):
        return Path(raw).expanduser()
    return raw


def _build_job(args: argparse.Namespace, cfg: AppConfig):
    """CLI flags override the persisted config."""
    overrides = {
        "keyfile_path": args.keyfile,
        "bucket_name": args.bucket,
        "output_dir": args.output_dir,
        "polling_interval_ms": args.polling_interval_ms,
        "timeout_ms": args.timeout_ms,
    }
    merged = cfg.to_dict()
    merged.update({k: (str(v) if isinstance(v, Path) else v) for k, v in overrides.items() if v is not None})
    effective = AppConfig.from_dict(merged)

    options = JobOptions(
        split_spread=args.split_spread,
        right_to_left=not args.left_to_right,
        remove_ruby=args.remove_ruby or cfg.remove_ruby,
        normalize_line_breaks=args.normalize_line_breaks or cfg.normalize_line_breaks,
    )
    return effective.make_job(args.file, options)


def run_job(job, show_progress: bool = True) -> int:
    """
    Run a job on a worker thread and render its events with tqdm.
    Returns the process exit code.
    """
    events = EventStream()
    orchestrator = JobOrchestrator(events=events, show_progress=False)
    failure: List[BaseException] = []

    def _target():
        try:
            orchestrator.run(job)
        except Exception as e:
            # the orchestrator has already published the error event
            failure.append(e)

    worker = Thread(target=_target, name="ocr-job", daemon=True)
    worker.start()

    exit_code = 1
    with tqdm(total=100, desc="OCR", unit="%", disable=not show_progress,
              bar_format="{l_bar}{bar}| {n:.0f}/{total_fmt} [{elapsed}]") as bar:
        for event in events:
            if isinstance(event, ProgressEvent):
                bar.set_description(event.phase.value)
                if event.percentage is not None and event.percentage >= bar.n:
                    bar.update(event.percentage - bar.n)
                bar.set_postfix_str(event.message)
            elif isinstance(event, CompleteEvent):
                bar.update(100 - bar.n)
                exit_code = 0
                tqdm.write(f"Saved {event.output_path} ({event.page_count} pages, {event.processing_time_ms / 1000:.1f}s)")
            elif isinstance(event, ErrorEvent):
                tqdm.write(f"Failed during {event.phase}: {event.error_message}")
    worker.join()

    if failure and not isinstance(failure[0], VisionMDError):
        raise failure[0]
    return exit_code


# -------------------------------
# CLI parsing
# -------------------------------

def _build_run_parser(subparsers: argparse._SubParsersAction | argparse.ArgumentParser) -> argparse.ArgumentParser:
    """
    Build the 'run' parser. If 'subparsers' is the root parser,
    this also works for legacy (no-subcommand) mode.
    """
    if isinstance(subparsers, argparse.ArgumentParser):
        p = subparsers
    else:
        p = subparsers.add_parser("run", help="OCR a PDF or image into Markdown")

    p.add_argument("file", type=Path, help="PDF, TIFF, GIF, JPEG or PNG file to OCR")
    p.add_argument("--config", type=Path, dest="config_path", help="Path to the settings JSON file")

    # Remote settings, fall back to the settings file
    remote = p.add_argument_group("Google Cloud")
    remote.add_argument("-k", "--keyfile", type=Path, help="Service account key file")
    remote.add_argument("-b", "--bucket", help="Cloud Storage bucket used for input and output")
    remote.add_argument("--polling-interval-ms", type=int, help="Delay between operation status checks")
    remote.add_argument("--timeout-ms", type=int, help="Give up waiting for OCR after this long")

    p.add_argument("-o", "--output-dir", type=Path, help="Directory for the generated .md file")

    # Reconstruction options
    opts = p.add_argument_group("Reconstruction")
    opts.add_argument("--split-spread", action="store_true", help="Split landscape (two-page) PDF pages before OCR")
    opts.add_argument("--left-to-right", action="store_true",
                      help="Put the left half of a split spread first (default is right half first)")
    opts.add_argument("--remove-ruby", action="store_true", help="Drop small ruby/furigana glyphs")
    opts.add_argument("--normalize-line-breaks", action="store_true",
                      help="Join wrapped lines and separate paragraphs with blank lines")

    log_group = p.add_argument_group("Logging")
    log_group.add_argument("--log-file", type=Path, default=DEFAULT_LOG_PATH, help="Log file path")
    log_group.add_argument("-v", "--verbose", action="store_true", help="Show debug messages")
    log_group.add_argument("--no-progress", action="store_true", help="Do not draw a progress bar")
    return p


def _build_split_parser(subparsers: argparse._SubParsersAction) -> argparse.ArgumentParser:
    sp = subparsers.add_parser("split", help="Split spread pages of a PDF without running OCR")
    sp.add_argument("file", type=Path, help="PDF to split")
    sp.add_argument("-o", "--output", type=Path, help="Output PDF (default, <name>-split.pdf next to the input)")
    sp.add_argument("--left-to-right", action="store_true", help="Put the left half first")
    return sp


def _build_config_parser(subparsers: argparse._SubParsersAction) -> argparse.ArgumentParser:
    cp = subparsers.add_parser("config", help="Show or change persisted settings")
    cp.add_argument("--config", type=Path, dest="config_path", help="Path to the settings JSON file")
    actions = cp.add_subparsers(dest="action")
    actions.add_parser("show", help="Print the current settings")
    setp = actions.add_parser("set", help="Change one setting")
    setp.add_argument("key")
    setp.add_argument("value")
    return cp


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="visionmd, scanned documents to Markdown with Cloud Vision OCR")
    subparsers = parser.add_subparsers(dest="command")

    _build_run_parser(subparsers)
    _build_split_parser(subparsers)
    _build_config_parser(subparsers)

    if argv is None:
        argv = sys.argv[1:]
    if argv and argv[0] not in _SUBCOMMANDS and not argv[0].startswith("-"):
        # Legacy mode: 'visionmd FILE ...' means 'visionmd run FILE ...'
        legacy_parser = argparse.ArgumentParser(add_help=False)
        _build_run_parser(legacy_parser)
        try:
            args = legacy_parser.parse_args(argv)
            args.command = "run"
            return args
        except SystemExit:
            # Fall back to full parser to show proper help
            pass

    return parser.parse_args(argv)


# -------------------------------
# Entry points
# -------------------------------

def _run_from_cli(args: argparse.Namespace) -> int:
    log_queue: Queue = Queue(-1)
    listener = setup_logging(
        log_queue,
        level=logging.DEBUG if args.verbose else logging.WARNING,
        console=True,
        file_path=args.log_file,
        file_level=logging.DEBUG if args.verbose else logging.INFO,
    )
    listener.start()
    try:
        cfg = load_config(args.config_path)
        job = _build_job(args, cfg)
        return run_job(job, show_progress=not args.no_progress)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1
    finally:
        listener.stop()


def _split_from_cli(args: argparse.Namespace) -> int:
    src: Path = args.file
    if not src.is_file():
        print(f"Input file not found: {src}", file=sys.stderr)
        return 1
    out = args.output or src.with_name(f"{src.stem}-split.pdf")
    try:
        spreads = count_spread_pages(src)
        tmp = split_spread_pdf(src, right_to_left=not args.left_to_right, temp_dir=out.parent)
    except VisionMDError as e:
        print(f"Split failed: {e}", file=sys.stderr)
        return 1
    tmp.replace(out)
    pages = get_pdf_processor().page_count(out)
    print(f"Wrote {out} ({pages} pages, {spreads} spreads split)")
    return 0


def _config_from_cli(args: argparse.Namespace) -> int:
    try:
        cfg = load_config(args.config_path)
        if args.action == "set":
            setattr(cfg, args.key, _coerce_config_value(cfg, args.key, args.value))
            path = save_config(cfg, args.config_path)
            print(f"Saved {args.key} to {path}")
            return 0
        print(json.dumps(cfg.to_dict(), indent=2, ensure_ascii=False))
        return 0
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)

    if args.command == "run":
        return _run_from_cli(args)
    if args.command == "split":
        return _split_from_cli(args)
    if args.command == "config":
        return _config_from_cli(args)

    print("Usage:\n  visionmd run <file> [options]\n  visionmd split <file.pdf> [-o out.pdf]\n  visionmd config show|set KEY VALUE")
    return 2


def entry():
    sys.exit(main())


if __name__ == "__main__":
    entry()
