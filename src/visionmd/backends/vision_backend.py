# visionmd/backends/vision_backend.py
from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Union

from google.api_core import exceptions as gexc
from google.auth import exceptions as auth_exc
from google.cloud import vision
from google.protobuf.json_format import MessageToDict

from ..exceptions import ApiRequestError, AuthenticationError, UnsupportedFormatError
from ..models import OperationStatus
from .base import BaseOCRClient

logger = logging.getLogger("visionmd")

# Pages per output JSON shard
BATCH_SIZE = 100

MIME_TYPES = {
    ".pdf": "application/pdf",
    ".tif": "image/tiff",
    ".tiff": "image/tiff",
    ".gif": "image/gif",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
}


def mime_type_for(path: str) -> str:
    suffix = Path(path).suffix.lower()
    try:
        return MIME_TYPES[suffix]
    except KeyError:
        raise UnsupportedFormatError(f"Unsupported file format, {suffix or path}") from None


class VisionOCRClient(BaseOCRClient):
    """
    Google Cloud Vision client for DOCUMENT_TEXT_DETECTION.

    Created ready to use through from_keyfile().
    """

    def __init__(self, client: vision.ImageAnnotatorClient):
        self._client = client

    @classmethod
    def from_keyfile(cls, keyfile_path: Optional[Union[str, Path]] = None) -> "VisionOCRClient":
        try:
            if keyfile_path:
                client = vision.ImageAnnotatorClient.from_service_account_file(str(keyfile_path))
            else:
                client = vision.ImageAnnotatorClient()
        except (auth_exc.GoogleAuthError, OSError, ValueError) as e:
            logger.error("Vision API initialization failed, %s", e)
            raise AuthenticationError(
                "Vision API authentication failed, check the service account key file", details=str(e)
            ) from e
        logger.info("Vision API client initialized")
        return cls(client)

    def submit_batch(self, input_uri: str, output_uri_prefix: str) -> str:
        mime_type = mime_type_for(input_uri)
        logger.info("Submitting async batch annotation")
        logger.info("  input, %s", input_uri)
        logger.info("  output, %s", output_uri_prefix)
        logger.info("  mime type, %s", mime_type)

        request = vision.AsyncAnnotateFileRequest(
            input_config=vision.InputConfig(
                gcs_source=vision.GcsSource(uri=input_uri),
                mime_type=mime_type,
            ),
            features=[vision.Feature(type_=vision.Feature.Type.DOCUMENT_TEXT_DETECTION)],
            output_config=vision.OutputConfig(
                gcs_destination=vision.GcsDestination(uri=output_uri_prefix),
                batch_size=BATCH_SIZE,
            ),
        )
        try:
            operation = self._client.async_batch_annotate_files(requests=[request])
        except gexc.GoogleAPIError as e:
            logger.error("Batch annotation request failed, %s", e)
            raise ApiRequestError("Vision API request failed", details=str(e)) from e

        name = getattr(getattr(operation, "operation", None), "name", "")
        if not name:
            raise ApiRequestError("Vision API did not return an operation name")
        logger.info("Batch annotation accepted, operation %s", name)
        return name

    def poll_status(self, operation_handle: str) -> OperationStatus:
        try:
            op = self._client.transport.operations_client.get_operation(operation_handle)
        except gexc.GoogleAPIError as e:
            logger.error("Failed to fetch operation status, %s", e)
            raise ApiRequestError("Failed to fetch operation status", details=str(e)) from e

        error = None
        if op.HasField("error"):
            error = {"code": op.error.code, "message": op.error.message or "Unknown error"}
        metadata = None
        if op.HasField("metadata"):
            try:
                metadata = MessageToDict(op.metadata)
            except (TypeError, KeyError) as e:
                # Any payload whose type is not registered locally
                logger.debug("Could not decode operation metadata, %s", e)
        return OperationStatus(done=bool(op.done), error=error, metadata=metadata)

    def submit_sync(self, local_image_path: Path) -> str:
        local_image_path = Path(local_image_path)
        mime_type_for(str(local_image_path))
        logger.info("Running synchronous document text detection on %s", local_image_path.name)
        try:
            content = local_image_path.read_bytes()
            response = self._client.document_text_detection(image=vision.Image(content=content))
        except OSError as e:
            raise ApiRequestError(f"Failed to read image {local_image_path}", details=str(e)) from e
        except gexc.GoogleAPIError as e:
            logger.error("Synchronous OCR request failed, %s", e)
            raise ApiRequestError("Vision API request failed", details=str(e)) from e

        if response.error.message:
            raise ApiRequestError(
                f"Vision API reported an error, {response.error.message}",
                details={"code": response.error.code, "message": response.error.message},
            )
        return response.full_text_annotation.text or ""
