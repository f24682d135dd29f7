# visionmd/exceptions.py
from typing import Any, Optional


class VisionMDError(Exception):
    """Base exception for the visionmd library."""
    code = "E000"

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


class SourceNotFoundError(VisionMDError):
    """Raised when the input file does not exist."""
    code = "E001"


class AuthenticationError(VisionMDError):
    """Raised when a remote client cannot be created from the key file."""
    code = "E002"


class ConfigurationError(VisionMDError):
    """Raised for invalid or unreadable configuration."""
    code = "E003"


class BucketNotFoundError(VisionMDError):
    code = "E101"


class UploadError(VisionMDError):
    code = "E102"


class DownloadError(VisionMDError):
    code = "E103"


class ListFilesError(DownloadError):
    code = "E104"


class ApiRequestError(VisionMDError):
    """Raised when the OCR request fails or the remote operation reports an error."""
    code = "E201"


class OperationTimeoutError(VisionMDError):
    """Raised when polling exceeds the job timeout. Kept apart from ApiRequestError."""
    code = "E202"


class NoResultsError(VisionMDError):
    """Raised when the output prefix holds no result files."""
    code = "E203"


class UnsupportedFormatError(VisionMDError):
    """Raised before any remote call when the file extension is not accepted."""
    code = "E204"


class ResultParseError(VisionMDError):
    """Raised only when not a single result file could be parsed."""
    code = "E301"


class TextExtractionError(VisionMDError):
    code = "E302"


class FileWriteError(VisionMDError):
    code = "E303"
