# visionmd/orchestrator.py
from __future__ import annotations

import logging
import tempfile
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from contextlib import contextmanager
from pathlib import Path, PurePosixPath
from typing import Callable, Iterator, List, Optional

from tqdm import tqdm

from .backends import BaseOCRClient, BaseStorageClient, get_ocr_client, get_storage_client
from .config import Job
from .events import EventStream
from .exceptions import (
    ApiRequestError,
    BucketNotFoundError,
    ConfigurationError,
    NoResultsError,
    OperationTimeoutError,
    SourceNotFoundError,
    UnsupportedFormatError,
    VisionMDError,
)
from .extraction import count_pages, extract_text, load_result_files
from .logger import PROGRESS  # registers Logger.progress
from .markdown import compose_markdown, output_path_for, save_markdown
from .models import (
    CompleteEvent,
    ErrorEvent,
    JobResult,
    JobState,
    OperationStatus,
    Phase,
    ProcessingStrategy,
    ProgressEvent,
    ResultFile,
    now_ms,
)
from .page_range import sort_result_files, start_page
from .pdf_processor import spread_split
from .utils import format_elapsed, remove_dir, verify_image

logger = logging.getLogger("visionmd")

# The async batch mode only takes these; plain images must go through the sync call.
BATCH_EXTENSIONS = frozenset({".pdf", ".tif", ".tiff", ".gif"})
SYNC_EXTENSIONS = frozenset({".jpg", ".jpeg", ".png"})

_STATE_ORDER = [
    JobState.IDLE,
    JobState.UPLOADING,
    JobState.REQUESTING,
    JobState.POLLING,
    JobState.DOWNLOADING,
    JobState.PARSING,
    JobState.SAVING,
    JobState.COMPLETE,
]


def classify_source(path: Path) -> ProcessingStrategy:
    suffix = Path(path).suffix.lower()
    if suffix in BATCH_EXTENSIONS:
        return ProcessingStrategy.BATCH
    if suffix in SYNC_EXTENSIONS:
        return ProcessingStrategy.SYNC
    supported = ", ".join(sorted(BATCH_EXTENSIONS | SYNC_EXTENSIONS))
    raise UnsupportedFormatError(f"Unsupported file format '{suffix}'. Supported, {supported}")


StorageFactory = Callable[[Optional[Path]], BaseStorageClient]
OCRFactory = Callable[[Optional[Path]], BaseOCRClient]


class JobOrchestrator:
    """
    Runs one OCR job end to end.

    Batch path: upload -> batch request -> poll -> download -> parse -> save.
    Sync path (single images): one synchronous request -> save.
    Progress is published on ``self.events`` and logged at PROGRESS level.
    One job at a time per instance.
    """

    def __init__(
        self,
        storage_factory: Optional[StorageFactory] = None,
        ocr_factory: Optional[OCRFactory] = None,
        events: Optional[EventStream] = None,
        *,
        download_workers: int = 4,
        show_progress: bool = False,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.storage_factory = storage_factory or (lambda keyfile: get_storage_client("gcs", keyfile))
        self.ocr_factory = ocr_factory or (lambda keyfile: get_ocr_client("vision", keyfile))
        self.events = events if events is not None else EventStream()
        self.download_workers = max(1, download_workers)
        self.show_progress = show_progress
        self._sleep = sleep
        self._clock = clock
        self.state = JobState.IDLE
        self._phase: Optional[Phase] = None

    # -----------------------------
    # State and event helpers
    # -----------------------------
    def _set_state(self, new: JobState):
        if new is not JobState.FAILED and _STATE_ORDER.index(new) < _STATE_ORDER.index(self.state):
            raise RuntimeError(f"Invalid job state transition {self.state.value} -> {new.value}")
        if new is not self.state:
            logger.debug("Job state %s -> %s", self.state.value, new.value)
        self.state = new

    def _progress(self, phase: Phase, message: str, pct: Optional[float] = None):
        self._phase = phase
        self.events.publish(ProgressEvent(phase=phase, message=message, percentage=pct))
        logger.progress(
            "[%s] %s%s", phase.value, message, f" ({pct:.0f}%)" if pct is not None else "",
            extra={"phase": phase.value, "pct": pct},
        )

    def _fail(self, error: Exception):
        self.state = JobState.FAILED
        phase = self._phase.value if self._phase else "ocr"
        details = getattr(error, "details", None)
        message = error.message if isinstance(error, VisionMDError) else str(error)
        self.events.publish(ErrorEvent(phase=phase, error_message=message, details=details))
        logger.error("OCR job failed during %s, %s", phase, error)

    # -----------------------------
    # Public entry point
    # -----------------------------
    def run(self, job: Job) -> JobResult:
        if not (self.state is JobState.IDLE or self.state.is_terminal):
            raise RuntimeError("This orchestrator is already running a job")
        self.state = JobState.IDLE
        self._phase = None
        started = self._clock()

        logger.info("=" * 60)
        logger.info("OCR job started, %s", job.source_path)
        logger.info("=" * 60)

        try:
            if not job.source_path.is_file():
                raise SourceNotFoundError(f"Input file not found, {job.source_path}")
            strategy = classify_source(job.source_path)
            logger.info("Processing strategy, %s", strategy.value)

            if strategy is ProcessingStrategy.SYNC:
                verify_image(job.source_path)
                result = self._run_sync(job, started)
            else:
                if not job.bucket:
                    raise ConfigurationError("No bucket name configured")
                with self._prepared_source(job) as source:
                    result = self._run_batch(job, source, started)
        except Exception as e:
            self._fail(e)
            raise

        self._set_state(JobState.COMPLETE)
        self.events.publish(CompleteEvent(
            output_path=result.output_path,
            page_count=result.page_count,
            processing_time_ms=result.processing_time_ms,
        ))
        logger.info("=" * 60)
        logger.info("OCR job complete (%s)", strategy.value)
        logger.info("Output, %s", result.output_path)
        logger.info("Pages, %d", result.page_count)
        logger.info("Processing time, %ds", result.processing_time_ms // 1000)
        logger.info("=" * 60)
        return result

    def _elapsed_ms(self, started: float) -> int:
        return int((self._clock() - started) * 1000)

    @contextmanager
    def _prepared_source(self, job: Job) -> Iterator[Path]:
        """Yields the file to upload, splitting spread pages first when asked."""
        src = job.source_path
        if not job.options.split_spread:
            yield src
            return
        if src.suffix.lower() != ".pdf":
            logger.warning("Spread splitting only applies to PDF files, skipping for %s", src.name)
            yield src
            return
        self._progress(Phase.UPLOAD, "Splitting spread pages", 0)
        with spread_split(src, right_to_left=job.options.right_to_left) as split_path:
            yield split_path

    # -----------------------------
    # Sync path
    # -----------------------------
    def _run_sync(self, job: Job, started: float) -> JobResult:
        if job.options.split_spread:
            logger.warning("Spread splitting only applies to PDF files, skipping for %s", job.source_path.name)

        self._progress(Phase.UPLOAD, "Initializing OCR client", 0)
        ocr = self.ocr_factory(job.keyfile_path)
        self._progress(Phase.UPLOAD, "Initialization complete", 20)

        self._set_state(JobState.REQUESTING)
        self._progress(Phase.API_REQUEST, "Sending OCR request", 30)
        text = ocr.submit_sync(job.source_path)
        self._progress(Phase.API_REQUEST, "OCR request complete", 80)

        self._set_state(JobState.PARSING)
        self._progress(Phase.PARSE, "Converting to Markdown", 85)
        markdown = compose_markdown([text])

        self._set_state(JobState.SAVING)
        self._progress(Phase.SAVE, "Saving file", 95)
        out = save_markdown(markdown, output_path_for(job.source_path, job.output_dir))
        self._progress(Phase.SAVE, "Saved", 100)

        # a single image is always one page
        return JobResult(output_path=out, page_count=1, processing_time_ms=self._elapsed_ms(started))

    # -----------------------------
    # Batch path
    # -----------------------------
    def _run_batch(self, job: Job, source: Path, started: float) -> JobResult:
        temp_dir = Path(tempfile.mkdtemp(prefix="ocr-"))
        try:
            # Step 1. Clients and bucket
            self._progress(Phase.UPLOAD, "Initializing storage and OCR clients", 0)
            storage = self.storage_factory(job.keyfile_path)
            ocr = self.ocr_factory(job.keyfile_path)
            if not storage.bucket_exists(job.bucket):
                raise BucketNotFoundError(f"Bucket not found, {job.bucket}")

            # Step 2. Upload
            self._set_state(JobState.UPLOADING)
            self._progress(Phase.UPLOAD, "Uploading file", 10)
            ts = now_ms()
            input_path = f"input/{ts}-{job.source_path.name}"
            output_prefix = f"output/{ts}/"
            storage.upload(source, job.bucket, input_path)
            self._progress(Phase.UPLOAD, "Upload complete", 30)

            # Step 3. Batch request
            self._set_state(JobState.REQUESTING)
            self._progress(Phase.API_REQUEST, "Sending OCR request", 35)
            handle = ocr.submit_batch(f"gs://{job.bucket}/{input_path}", f"gs://{job.bucket}/{output_prefix}")
            if not handle:
                raise ApiRequestError("OCR service returned no operation handle")
            self._progress(Phase.API_REQUEST, "Request accepted, processing started", 40)

            # Step 4. Poll
            self._set_state(JobState.POLLING)
            self._progress(Phase.POLLING, "Waiting for OCR to finish", 45)
            self._poll(ocr, handle, job)
            self._progress(Phase.POLLING, "OCR finished", 75)

            # Steps 5-6. List and download
            self._set_state(JobState.DOWNLOADING)
            self._progress(Phase.DOWNLOAD, "Downloading results", 80)
            names = [n for n in storage.list(job.bucket, output_prefix) if n.lower().endswith(".json")]
            if not names:
                raise NoResultsError("No result JSON files were found")
            result_files = self._download_all(storage, job.bucket, names, temp_dir)
            self._progress(Phase.DOWNLOAD, "Download complete", 90)

            # Steps 7-9. Order, parse, extract
            self._set_state(JobState.PARSING)
            self._progress(Phase.PARSE, "Extracting text", 92)
            ordered = sort_result_files([rf.local_path for rf in result_files])
            documents = load_result_files(ordered)
            self._progress(Phase.PARSE, "Converting to Markdown", 95)
            pages = extract_text(
                documents,
                remove_ruby=job.options.remove_ruby,
                normalize_line_breaks=job.options.normalize_line_breaks,
            )
            page_count = count_pages(documents)
            markdown = compose_markdown(pages)

            # Step 10. Save
            self._set_state(JobState.SAVING)
            self._progress(Phase.SAVE, "Saving file", 97)
            out = save_markdown(markdown, output_path_for(job.source_path, job.output_dir))
            self._progress(Phase.SAVE, "Saved", 100)

            return JobResult(output_path=out, page_count=page_count, processing_time_ms=self._elapsed_ms(started))
        finally:
            # Step 11. Always clean up
            remove_dir(temp_dir)

    def _poll(self, ocr: BaseOCRClient, handle: str, job: Job) -> OperationStatus:
        """
        Poll at a fixed interval until the operation is done, reports an
        error, or the job timeout elapses.
        """
        interval = job.polling_interval_ms / 1000.0
        timeout = job.timeout_ms / 1000.0
        logger.info("Polling operation %s", handle)
        logger.info("  interval, %dms", job.polling_interval_ms)
        logger.info("  timeout, %dms", job.timeout_ms)

        t0 = self._clock()
        poll_count = 0
        while True:
            poll_count += 1
            elapsed = self._clock() - t0
            if elapsed >= timeout:
                raise OperationTimeoutError(f"Operation timed out after {job.timeout_ms}ms")

            status = ocr.poll_status(handle)

            elapsed_ms = elapsed * 1000
            self._progress(
                Phase.POLLING,
                f"OCR in progress (elapsed {format_elapsed(elapsed_ms)})",
                45 + min(elapsed_ms / 60000 * 5, 30),
            )

            if status.error:
                msg = status.error.get("message", "Unknown error")
                raise ApiRequestError(f"OCR operation failed, {msg}", details=status.error)

            if status.done:
                logger.info("Operation done after %d polls, %dms", poll_count, int(elapsed_ms))
                return status

            logger.debug("Poll %d, not done yet", poll_count)
            remaining = timeout - (self._clock() - t0)
            self._sleep(max(0.0, min(interval, remaining)))

    def _download_all(
        self, storage: BaseStorageClient, bucket: str, names: List[str], temp_dir: Path
    ) -> List[ResultFile]:
        """
        Download result shards in parallel. Returns only after every
        download has finished.
        """
        result_files = [
            ResultFile(
                remote_path=name,
                local_path=temp_dir / PurePosixPath(name).name,
                start_page=start_page(name),
            )
            for name in names
        ]
        total = len(result_files)
        workers = min(self.download_workers, total)

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="download") as pool:
            futures = {
                pool.submit(storage.download, bucket, rf.remote_path, rf.local_path): rf
                for rf in result_files
            }
            done = 0
            for fut in tqdm(as_completed(futures), total=total, desc="Downloading results",
                            disable=not self.show_progress, leave=False):
                fut.result()  # re-raises DownloadError
                done += 1
                self._progress(
                    Phase.DOWNLOAD,
                    f"Downloading ({done}/{total})",
                    80 + int(done / total * 10),
                )
        return result_files
