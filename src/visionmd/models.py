# visionmd/models.py
from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional


def now_ms() -> int:
    return int(time.time() * 1000)


class JobState(str, Enum):
    IDLE = "idle"
    UPLOADING = "uploading"
    REQUESTING = "requesting"
    POLLING = "polling"
    DOWNLOADING = "downloading"
    PARSING = "parsing"
    SAVING = "saving"
    COMPLETE = "complete"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobState.COMPLETE, JobState.FAILED)


class ProcessingStrategy(str, Enum):
    """How a source file is sent to the OCR service."""
    SYNC = "sync"    # single image, one synchronous call
    BATCH = "batch"  # multi-page container, storage round trip


class Phase(str, Enum):
    UPLOAD = "upload"
    API_REQUEST = "api-request"
    POLLING = "polling"
    DOWNLOAD = "download"
    PARSE = "parse"
    SAVE = "save"


@dataclass
class OperationStatus:
    """Snapshot of a remote long-running operation."""
    done: bool
    error: Optional[Dict[str, Any]] = None  # {"code": int, "message": str}
    metadata: Optional[Any] = None


@dataclass
class ResultFile:
    """A downloaded result shard inside a job's temp directory."""
    remote_path: str
    local_path: Path
    start_page: int = 0


@dataclass
class JobResult:
    output_path: Path
    page_count: int
    processing_time_ms: int


# --- Events ---

@dataclass
class ProgressEvent:
    phase: Phase
    message: str
    percentage: Optional[float] = None
    timestamp: int = field(default_factory=now_ms)

    terminal = False


@dataclass
class CompleteEvent:
    output_path: Path
    page_count: int
    processing_time_ms: int
    timestamp: int = field(default_factory=now_ms)

    terminal = True


@dataclass
class ErrorEvent:
    phase: str
    error_message: str
    details: Optional[Any] = None
    timestamp: int = field(default_factory=now_ms)

    terminal = True
