# visionmd/backends/base.py
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List

from ..models import OperationStatus


class BaseStorageClient(ABC):
    """Object storage as seen by the orchestrator. Uploads and downloads stream from/to disk."""

    @abstractmethod
    def upload(self, local_path: Path, bucket: str, dest_path: str) -> None:
        pass

    @abstractmethod
    def download(self, bucket: str, src_path: str, local_path: Path) -> None:
        pass

    @abstractmethod
    def list(self, bucket: str, prefix: str) -> List[str]:
        """Return object names under prefix."""
        pass

    @abstractmethod
    def exists(self, bucket: str, path: str) -> bool:
        pass

    @abstractmethod
    def bucket_exists(self, bucket: str) -> bool:
        pass


class BaseOCRClient(ABC):
    @abstractmethod
    def submit_batch(self, input_uri: str, output_uri_prefix: str) -> str:
        """Start an asynchronous batch annotation, return the operation handle."""
        pass

    @abstractmethod
    def poll_status(self, operation_handle: str) -> OperationStatus:
        pass

    @abstractmethod
    def submit_sync(self, local_image_path: Path) -> str:
        """Recognize a single image and return its full text."""
        pass
