# visionmd/config.py
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Any, Dict, Optional, Union

from .exceptions import ConfigurationError

logger = logging.getLogger("visionmd")

CONFIG_DIR = Path.home() / ".visionmd"
CONFIG_PATH = CONFIG_DIR / "config.json"

DEFAULT_POLLING_INTERVAL_MS = 10_000
DEFAULT_TIMEOUT_MS = 60 * 60 * 1000  # 1 hour

_PATH_FIELDS = ("keyfile_path", "output_dir")


@dataclass
class JobOptions:
    """Per-run switches for the reconstruction pipeline."""
    split_spread: bool = False
    right_to_left: bool = True        # right half first, for vertical Japanese text
    remove_ruby: bool = False
    normalize_line_breaks: bool = False


@dataclass
class Job:
    """Everything the orchestrator needs for one run."""
    source_path: Path
    bucket: str
    output_dir: Path
    keyfile_path: Optional[Path] = None
    options: JobOptions = field(default_factory=JobOptions)
    polling_interval_ms: int = DEFAULT_POLLING_INTERVAL_MS
    timeout_ms: int = DEFAULT_TIMEOUT_MS

    def __post_init__(self):
        self.source_path = Path(self.source_path)
        self.output_dir = Path(self.output_dir)
        if self.keyfile_path is not None:
            self.keyfile_path = Path(self.keyfile_path)
        if self.polling_interval_ms <= 0:
            raise ConfigurationError(
                f"polling_interval_ms must be positive, got {self.polling_interval_ms}"
            )
        if self.timeout_ms <= 0:
            raise ConfigurationError(f"timeout_ms must be positive, got {self.timeout_ms}")


@dataclass
class AppConfig:
    """Persisted application settings, stored as JSON."""
    keyfile_path: Path = Path("")
    bucket_name: str = ""
    output_dir: Path = Path.home() / "Documents"
    polling_interval_ms: int = DEFAULT_POLLING_INTERVAL_MS
    timeout_ms: int = DEFAULT_TIMEOUT_MS

    remove_ruby: bool = False            # off by default
    normalize_line_breaks: bool = False  # off by default

    def validate(self) -> None:
        if not isinstance(self.bucket_name, str):
            raise ConfigurationError(f"bucket_name must be a string, got {self.bucket_name!r}")
        for key in _PATH_FIELDS:
            if not isinstance(getattr(self, key), (str, Path)):
                raise ConfigurationError(f"{key} must be a path, got {getattr(self, key)!r}")
        for key in ("polling_interval_ms", "timeout_ms"):
            value = getattr(self, key)
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise ConfigurationError(f"{key} must be a positive integer, got {value!r}")

    def to_dict(self) -> Dict[str, Any]:
        """Converts config to a JSON friendly dictionary."""
        d = asdict(self)
        for key, value in d.items():
            if isinstance(value, Path):
                d[key] = str(value)
        return d

    @classmethod
    def from_dict(cls, config_dict: dict) -> "AppConfig":
        d = dict(config_dict)

        # unknown keys from older config files are ignored
        known = set(cls.__dataclass_fields__)
        for key in list(d):
            if key not in known:
                logger.debug("Ignoring unknown config key %r", key)
                d.pop(key)

        for key in _PATH_FIELDS:
            if key in d and isinstance(d[key], str):
                d[key] = Path(d[key])

        # allow explicit None to mean use default
        for key in ["polling_interval_ms", "timeout_ms", "output_dir"]:
            if d.get(key) is None:
                d.pop(key, None)

        cfg = cls(**d)
        cfg.validate()
        return cfg

    def make_job(self, source_path: Union[str, Path], options: Optional[JobOptions] = None) -> Job:
        """Build a Job from these settings. Options default to the persisted switches."""
        if options is None:
            options = JobOptions(
                remove_ruby=self.remove_ruby,
                normalize_line_breaks=self.normalize_line_breaks,
            )
        keyfile = self.keyfile_path if str(self.keyfile_path) not in ("", ".") else None
        return Job(
            source_path=Path(source_path),
            bucket=self.bucket_name,
            output_dir=self.output_dir,
            keyfile_path=keyfile,
            options=options,
            polling_interval_ms=self.polling_interval_ms,
            timeout_ms=self.timeout_ms,
        )


def load_config(path: Optional[Union[str, Path]] = None) -> AppConfig:
    """
    Load settings from disk.
    When the file does not exist yet, the defaults are written and returned.
    """
    fp = Path(path) if path else CONFIG_PATH
    if not fp.exists():
        cfg = AppConfig()
        save_config(cfg, fp)
        return cfg
    try:
        data = json.loads(fp.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise ConfigurationError(f"Failed to read config file {fp}", details=str(e)) from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {fp} must contain a JSON object")
    try:
        return AppConfig.from_dict(data)
    except TypeError as e:
        raise ConfigurationError(f"Invalid config file {fp}", details=str(e)) from e


def save_config(config: AppConfig, path: Optional[Union[str, Path]] = None) -> Path:
    fp = Path(path) if path else CONFIG_PATH
    config.validate()
    try:
        fp.parent.mkdir(parents=True, exist_ok=True)
        fp.write_text(json.dumps(config.to_dict(), indent=2, ensure_ascii=False), encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(f"Failed to save config file {fp}", details=str(e)) from e
    return fp
