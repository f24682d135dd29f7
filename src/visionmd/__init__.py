"""
visionmd: turn scanned PDFs and images into Markdown with Google Cloud Vision.

Example:
    >>> from visionmd import AppConfig, JobOptions, JobOrchestrator
    >>> cfg = AppConfig(keyfile_path="key.json", bucket_name="my-ocr-bucket", output_dir="out")
    >>> job = cfg.make_job("book.pdf", JobOptions(split_spread=True, remove_ruby=True))
    >>> result = JobOrchestrator().run(job)
    >>> print(result.output_path, result.page_count)
"""

from visionmd.config import AppConfig, Job, JobOptions, load_config, save_config
from visionmd.events import EventStream
from visionmd.exceptions import (
    ApiRequestError,
    AuthenticationError,
    BucketNotFoundError,
    ConfigurationError,
    DownloadError,
    FileWriteError,
    ListFilesError,
    NoResultsError,
    OperationTimeoutError,
    ResultParseError,
    SourceNotFoundError,
    TextExtractionError,
    UnsupportedFormatError,
    UploadError,
    VisionMDError,
)
from visionmd.extraction import count_pages, extract_text, load_result_files
from visionmd.markdown import compose_markdown, save_markdown
from visionmd.models import (
    CompleteEvent,
    ErrorEvent,
    JobResult,
    JobState,
    OperationStatus,
    Phase,
    ProcessingStrategy,
    ProgressEvent,
)
from visionmd.orchestrator import JobOrchestrator, classify_source
from visionmd.page_range import sort_result_files
from visionmd.pdf_processor import cleanup_temp_pdf, count_spread_pages, split_spread_pdf, spread_split

__version__ = "1.0.0"
__all__ = [
    # Main API
    "JobOrchestrator",
    "classify_source",
    "split_spread_pdf",
    "spread_split",
    "cleanup_temp_pdf",
    "count_spread_pages",
    "sort_result_files",
    "load_result_files",
    "extract_text",
    "count_pages",
    "compose_markdown",
    "save_markdown",
    # Configuration
    "AppConfig",
    "Job",
    "JobOptions",
    "load_config",
    "save_config",
    # Models and events
    "EventStream",
    "JobState",
    "JobResult",
    "OperationStatus",
    "Phase",
    "ProcessingStrategy",
    "ProgressEvent",
    "CompleteEvent",
    "ErrorEvent",
    # Exceptions
    "VisionMDError",
    "SourceNotFoundError",
    "AuthenticationError",
    "ConfigurationError",
    "BucketNotFoundError",
    "UploadError",
    "DownloadError",
    "ListFilesError",
    "ApiRequestError",
    "OperationTimeoutError",
    "NoResultsError",
    "UnsupportedFormatError",
    "ResultParseError",
    "TextExtractionError",
    "FileWriteError",
]
