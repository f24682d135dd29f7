# visionmd/backends/gcs_backend.py
from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Union

from google.api_core import exceptions as gexc
from google.auth import exceptions as auth_exc
from google.cloud import storage

from ..exceptions import AuthenticationError, DownloadError, ListFilesError, UploadError
from .base import BaseStorageClient

logger = logging.getLogger("visionmd")

_CONTENT_TYPES = {
    ".pdf": "application/pdf",
    ".tif": "image/tiff",
    ".tiff": "image/tiff",
    ".gif": "image/gif",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".json": "application/json",
}

# 8 MiB chunks keep resumable uploads streaming instead of buffering the file
_CHUNK_SIZE = 8 * 1024 * 1024


class GCSStorageClient(BaseStorageClient):
    """
    Google Cloud Storage client.

    Instances are only created through from_keyfile(), which authenticates
    up front, so every method can assume a working client.
    """

    def __init__(self, client: storage.Client):
        self._client = client

    @classmethod
    def from_keyfile(cls, keyfile_path: Optional[Union[str, Path]] = None) -> "GCSStorageClient":
        """
        Build a client from a service account key file, or from application
        default credentials when no key file is given. Authentication is
        checked by listing a single bucket.
        """
        try:
            if keyfile_path:
                client = storage.Client.from_service_account_json(str(keyfile_path))
            else:
                client = storage.Client()
            list(client.list_buckets(max_results=1))
        except (gexc.GoogleAPIError, auth_exc.GoogleAuthError, OSError, ValueError) as e:
            logger.error("GCS initialization failed, %s", e)
            raise AuthenticationError(
                "GCP authentication failed, check the service account key file", details=str(e)
            ) from e
        logger.info("GCS client initialized")
        return cls(client)

    def upload(self, local_path: Path, bucket: str, dest_path: str) -> None:
        local_path = Path(local_path)
        logger.info("Uploading %s to gs://%s/%s", local_path, bucket, dest_path)
        try:
            blob = self._client.bucket(bucket).blob(dest_path, chunk_size=_CHUNK_SIZE)
            content_type = _CONTENT_TYPES.get(local_path.suffix.lower(), "application/octet-stream")
            blob.upload_from_filename(str(local_path), content_type=content_type)
        except (gexc.GoogleAPIError, OSError) as e:
            logger.error("Upload failed, %s", e)
            raise UploadError(f"Failed to upload file to {dest_path}", details=str(e)) from e
        logger.info("Upload complete, %s", dest_path)

    def download(self, bucket: str, src_path: str, local_path: Path) -> None:
        logger.info("Downloading gs://%s/%s to %s", bucket, src_path, local_path)
        blob = self._client.bucket(bucket).blob(src_path)
        try:
            if not blob.exists():
                raise DownloadError(f"Object not found in bucket, {src_path}")
            blob.download_to_filename(str(local_path))
        except (gexc.GoogleAPIError, OSError) as e:
            logger.error("Download failed, %s", e)
            raise DownloadError(f"Failed to download {src_path}", details=str(e)) from e
        logger.debug("Download complete, %s", local_path)

    def list(self, bucket: str, prefix: str) -> List[str]:
        logger.info("Listing gs://%s/%s", bucket, prefix)
        try:
            names = [b.name for b in self._client.list_blobs(bucket, prefix=prefix)]
        except gexc.GoogleAPIError as e:
            logger.error("Listing failed, %s", e)
            raise ListFilesError(f"Failed to list objects under {prefix}", details=str(e)) from e
        logger.info("Found %d objects", len(names))
        return names

    def exists(self, bucket: str, path: str) -> bool:
        try:
            return bool(self._client.bucket(bucket).blob(path).exists())
        except gexc.GoogleAPIError as e:
            logger.error("Existence check failed for %s, %s", path, e)
            return False

    def bucket_exists(self, bucket: str) -> bool:
        try:
            return bool(self._client.bucket(bucket).exists())
        except gexc.GoogleAPIError as e:
            logger.error("Bucket check failed for %s, %s", bucket, e)
            return False
