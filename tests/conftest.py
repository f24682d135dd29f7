"""
Pytest configuration and fixtures for visionmd tests.

Remote services are replaced by in-memory fakes that implement the
storage and OCR client interfaces.
"""

import json
from pathlib import Path
from typing import Dict, List, Optional

import fitz
import pytest

from visionmd.backends.base import BaseOCRClient, BaseStorageClient
from visionmd.config import Job, JobOptions
from visionmd.events import EventStream
from visionmd.exceptions import DownloadError
from visionmd.models import OperationStatus
from visionmd.orchestrator import JobOrchestrator


# -----------------------------
# Vision response builders
# -----------------------------

def make_symbol(text: str, height: float = 10, brk: Optional[str] = None, top: float = 0, normalized=False) -> dict:
    verts = [
        {"x": 0, "y": top},
        {"x": 10, "y": top},
        {"x": 10, "y": top + height},
        {"x": 0, "y": top + height},
    ]
    sym = {"text": text, "boundingBox": {"normalizedVertices" if normalized else "vertices": verts}}
    if brk:
        sym["property"] = {"detectedBreak": {"type": brk}}
    return sym


def make_paragraph(*words: List[dict]) -> dict:
    return {"words": [{"symbols": list(w)} for w in words]}


def make_block(*paragraphs: dict) -> dict:
    return {"paragraphs": list(paragraphs)}


def make_response(text: str = "", blocks: Optional[List[dict]] = None) -> dict:
    annotation = {"text": text}
    if blocks is not None:
        annotation["pages"] = [{"blocks": blocks}]
    return {"fullTextAnnotation": annotation}


def make_result_file(*responses: dict) -> dict:
    return {"responses": list(responses)}


# -----------------------------
# Fake remote clients
# -----------------------------

class FakeStorage(BaseStorageClient):
    def __init__(self, buckets=("test-bucket",)):
        self.buckets = set(buckets)
        self.objects: Dict[str, bytes] = {}
        self.uploads: List[str] = []
        self.downloads: List[str] = []
        self.fail_download: set = set()

    def upload(self, local_path, bucket, dest_path):
        self.uploads.append(dest_path)
        self.objects[dest_path] = Path(local_path).read_bytes()

    def download(self, bucket, src_path, local_path):
        if src_path in self.fail_download or src_path not in self.objects:
            raise DownloadError(f"Failed to download {src_path}")
        self.downloads.append(src_path)
        Path(local_path).write_bytes(self.objects[src_path])

    def list(self, bucket, prefix):
        return sorted(name for name in self.objects if name.startswith(prefix))

    def exists(self, bucket, path):
        return path in self.objects

    def bucket_exists(self, bucket):
        return bucket in self.buckets


class FakeOCR(BaseOCRClient):
    """
    Completes after `polls_until_done` status checks and then writes
    `shards` (basename -> payload) under the requested output prefix.
    """

    def __init__(self, storage: Optional[FakeStorage] = None, shards: Optional[Dict[str, object]] = None,
                 polls_until_done: int = 1, error: Optional[dict] = None, never_done: bool = False,
                 sync_text: str = "", handle: str = "operations/123"):
        self.storage = storage
        self.shards = shards or {}
        self.polls_until_done = polls_until_done
        self.error = error
        self.never_done = never_done
        self.sync_text = sync_text
        self.handle = handle
        self.polls = 0
        self.submitted: List[tuple] = []
        self.sync_calls: List[Path] = []

    def submit_batch(self, input_uri, output_uri_prefix):
        self.submitted.append((input_uri, output_uri_prefix))
        return self.handle

    def poll_status(self, operation_handle):
        self.polls += 1
        if self.error:
            return OperationStatus(done=True, error=self.error)
        if self.never_done or self.polls < self.polls_until_done:
            return OperationStatus(done=False)
        self._publish()
        return OperationStatus(done=True)

    def _publish(self):
        if self.storage is None or not self.submitted:
            return
        prefix = self.submitted[-1][1].split("/", 3)[3]  # gs://bucket/<prefix>
        for name, payload in self.shards.items():
            data = payload if isinstance(payload, (bytes, str)) else json.dumps(payload)
            self.storage.objects[prefix + name] = data.encode("utf-8") if isinstance(data, str) else data

    def submit_sync(self, local_image_path):
        self.sync_calls.append(Path(local_image_path))
        return self.sync_text


# -----------------------------
# Fixtures
# -----------------------------

@pytest.fixture
def storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def events() -> EventStream:
    return EventStream()


@pytest.fixture
def make_orchestrator(events):
    """Build an orchestrator wired to fake clients, without real sleeping."""
    def _make(storage, ocr, **kwargs):
        kwargs.setdefault("sleep", lambda s: None)
        return JobOrchestrator(
            storage_factory=lambda keyfile: storage,
            ocr_factory=lambda keyfile: ocr,
            events=events,
            **kwargs,
        )
    return _make


@pytest.fixture
def make_pdf(tmp_path):
    """Create a PDF from a list of (width, height) page sizes."""
    def _make(sizes, name="doc.pdf", label_halves=False) -> Path:
        path = tmp_path / name
        with fitz.open() as doc:
            for i, (w, h) in enumerate(sizes):
                page = doc.new_page(width=w, height=h)
                if label_halves and w > h:
                    page.insert_text((20, h / 2), f"LEFTHALF{i + 1}")
                    page.insert_text((w / 2 + 20, h / 2), f"RIGHTHALF{i + 1}")
                else:
                    page.insert_text((20, h / 2), f"PAGE{i + 1}")
            doc.save(path)
        return path
    return _make


@pytest.fixture
def make_job(tmp_path):
    def _make(source, **kwargs) -> Job:
        options = kwargs.pop("options", None) or JobOptions()
        kwargs.setdefault("bucket", "test-bucket")
        kwargs.setdefault("output_dir", tmp_path / "out")
        kwargs.setdefault("polling_interval_ms", 10)
        return Job(source_path=source, options=options, **kwargs)
    return _make
