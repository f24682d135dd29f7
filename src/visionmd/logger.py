# src/visionmd/logger.py

import logging
import sys
from logging.handlers import QueueHandler, QueueListener, RotatingFileHandler
from pathlib import Path
from queue import Queue
from typing import List, Optional, Union

LOGGER_NAME = "visionmd"
DEFAULT_LOG_PATH = Path.home() / ".visionmd" / "logs" / "app.log"

FILE_FORMAT = "%(asctime)s | %(threadName)-12s | %(levelname)-8s | %(message)s"
CONSOLE_FORMAT = "[%(levelname)s] %(message)s"

# --- PROGRESS level, between INFO and WARNING ---
PROGRESS = 25
logging.addLevelName(PROGRESS, "PROGRESS")


def _log_progress(self, msg, *args, **kwargs):
    if self.isEnabledFor(PROGRESS):
        self._log(PROGRESS, msg, args, **kwargs)


logging.Logger.progress = _log_progress


class LevelFilter(logging.Filter):
    """Keep only one level (only=True) or everything except it (only=False)."""

    def __init__(self, levelno: int, only: bool):
        super().__init__()
        self.levelno = levelno
        self.only = only

    def filter(self, record: logging.LogRecord) -> bool:
        return (record.levelno == self.levelno) is self.only


class EventQueueHandler(logging.Handler):
    """Puts PROGRESS records on a queue as plain dicts, for progress bars."""

    def __init__(self, q: Queue):
        super().__init__(level=PROGRESS)
        self.q = q
        self.addFilter(LevelFilter(PROGRESS, only=True))

    def emit(self, record: logging.LogRecord):
        try:
            self.q.put({
                "level": record.levelname,
                "msg": record.getMessage(),
                "phase": getattr(record, "phase", None),
                "pct": getattr(record, "pct", None),
            })
        except Exception:
            self.handleError(record)


def _file_handler(file_path: Union[str, Path], level: int) -> logging.Handler:
    fp = Path(file_path)
    fp.parent.mkdir(parents=True, exist_ok=True)
    # 5 MB x 3 files
    handler = RotatingFileHandler(fp, maxBytes=5 * 1024 * 1024, backupCount=2, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(FILE_FORMAT))
    handler.addFilter(LevelFilter(PROGRESS, only=False))
    return handler


def _console_handler(level: int) -> logging.Handler:
    # progress is drawn by tqdm, not printed
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    handler.addFilter(LevelFilter(PROGRESS, only=False))
    return handler


def setup_logging(
    log_queue: Queue,
    *,
    event_queue: Optional[Queue] = None,
    level: int = logging.INFO,
    console: bool = True,
    file_path: Optional[Union[str, Path]] = None,
    file_level: Optional[int] = None,
) -> QueueListener:
    """
    Route the "visionmd" logger through log_queue and build the listener
    that fans records out to the real handlers.

    Args:
        log_queue: Queue the library logger writes to.
        event_queue: Optional queue receiving PROGRESS records as dicts.
        level: Console level, and file level when file_level is not given.
        console: Echo records to stderr.
        file_path: Rotating log file.
        file_level: Level for the log file.

    Returns:
        A QueueListener. Call .start() before the job and .stop() after it.
    """
    handlers: List[logging.Handler] = []
    if file_path:
        handlers.append(_file_handler(file_path, file_level if file_level is not None else level))
    if console:
        handlers.append(_console_handler(level))
    if event_queue is not None:
        handlers.append(EventQueueHandler(event_queue))

    configure_queue_logging(log_queue)
    return QueueListener(log_queue, *handlers, respect_handler_level=True)


def configure_queue_logging(log_queue: Queue) -> logging.Logger:
    """Replace every handler of the "visionmd" logger with one QueueHandler."""
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    logger.handlers.clear()
    logger.addHandler(QueueHandler(log_queue))
    return logger
