# visionmd/backends/__init__.py
from __future__ import annotations

import importlib
from pathlib import Path
from typing import Optional, Union

from .base import BaseOCRClient, BaseStorageClient

_STORAGE_BACKENDS = {
    "gcs": "visionmd.backends.gcs_backend.GCSStorageClient",
}

_OCR_BACKENDS = {
    "vision": "visionmd.backends.vision_backend.VisionOCRClient",
}


def _load_class(dotted: str):
    module_path, cls_name = dotted.rsplit(".", 1)
    return getattr(importlib.import_module(module_path), cls_name)


def _resolve(name: str, mapping: dict) -> str:
    key = (name or "").strip().lower()
    if key in mapping:
        return mapping[key]
    if "." in name:
        return name  # fully qualified 'module.Class'
    raise ValueError(f"Unknown backend, '{name}'. Supported backends, {sorted(mapping)}")


def get_storage_client(name: str = "gcs", keyfile_path: Optional[Union[str, Path]] = None) -> BaseStorageClient:
    """Create a ready storage client by backend name."""
    return _load_class(_resolve(name, _STORAGE_BACKENDS)).from_keyfile(keyfile_path)


def get_ocr_client(name: str = "vision", keyfile_path: Optional[Union[str, Path]] = None) -> BaseOCRClient:
    """Create a ready OCR client by backend name."""
    return _load_class(_resolve(name, _OCR_BACKENDS)).from_keyfile(keyfile_path)


__all__ = ["BaseOCRClient", "BaseStorageClient", "get_ocr_client", "get_storage_client"]
