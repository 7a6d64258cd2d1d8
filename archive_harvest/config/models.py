"""Pydantic models describing a single harvest run."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

DEFAULT_CDX_ENDPOINT = "https://web.archive.org/cdx/search/cdx"

DEFAULT_EXCLUDE_EXTENSIONS: tuple[str, ...] = (
    "js", "css", "png", "jpg", "jpeg", "gif", "svg", "webp", "ico", "bmp", "tif", "tiff",
    "woff", "woff2", "ttf", "eot", "mp4", "mp3", "wav", "avi", "mov", "mkv", "zip", "rar",
    "7z", "pdf",
)


class OutputMode(str, Enum):
    """Mutually exclusive output transforms."""

    DEFAULT = "default"
    ONLY_QUERY = "only-query"
    ONLY_QUERY_KEYS = "only-query-keys"
    NO_QUERY = "no-query"
    EXTRACT_PATHS = "extract-paths"
    SUBDOMAINS = "subdomains"


def _strip_scheme(value: str) -> str:
    text = value.strip()
    for prefix in ("http://", "https://"):
        if text.startswith(prefix):
            return text[len(prefix):]
    return text


def _cut_host(value: str) -> str:
    host = _strip_scheme(value)
    for index, char in enumerate(host):
        if char in "/:\\":
            host = host[:index]
            break
    return host.replace("*", "").strip(" .")


def normalize_cdx_pattern(pattern: str, subdomains: bool = False) -> str:
    """Prepare a user supplied pattern for the CDX ``url`` parameter.

    In subdomain mode the bare host is prefixed with ``*.`` so the index
    returns captures for every subdomain. Otherwise a trailing ``*`` is
    appended unless the caller already used a wildcard, in which case the
    pattern is passed through with only the scheme removed.
    """

    host = _cut_host(pattern)
    if subdomains:
        return f"*.{host}"
    if "*" not in pattern:
        return f"{host}*"
    return _strip_scheme(pattern)


def derive_base_domain(pattern: str) -> str:
    """Return the bare domain used to recognise subdomains (may be empty)."""

    return _cut_host(pattern)


def split_extensions(value: Any) -> list[str]:
    """Turn ``"js, .CSS,,png"`` (or a list) into ``["js", "CSS", "png"]``."""

    if value is None:
        return []
    if isinstance(value, str):
        items = value.split(",")
    elif isinstance(value, (list, tuple, set)):
        items = [str(item) for item in value]
    else:
        raise ValueError("Extension list expects a comma-separated string or a list")
    tokens = []
    for item in items:
        token = item.strip().lstrip(".").strip()
        if token:
            tokens.append(token)
    return tokens


class HarvestConfig(BaseModel):
    """Immutable configuration consumed by the harvest pipeline."""

    model_config = ConfigDict(frozen=True)

    url_pattern: str
    mode: OutputMode = OutputMode.DEFAULT
    include_ext: list[str] = Field(default_factory=list)
    # None means the exclude option was never given; [] means "given but empty".
    exclude_ext: list[str] | None = None
    exclude_defaults: bool = False
    workers: int = 20
    page_workers: int = 10
    timeout: float = 80.0
    output_file: Path | None = None
    cdx_endpoint: str = DEFAULT_CDX_ENDPOINT
    backoff_seconds: float = 1.0
    queue_size: int = 2000
    log_dir: Path | None = None

    @field_validator("url_pattern", mode="before")
    @classmethod
    def _strip_pattern(cls, value: Any) -> str:
        text = str(value or "").strip()
        if not text:
            raise ValueError("url_pattern cannot be empty")
        return text

    @field_validator("include_ext", mode="before")
    @classmethod
    def _coerce_include(cls, value: Any) -> list[str]:
        return split_extensions(value)

    @field_validator("exclude_ext", mode="before")
    @classmethod
    def _coerce_exclude(cls, value: Any) -> list[str] | None:
        if value is None:
            return None
        return split_extensions(value)

    @field_validator("workers", "page_workers", mode="before")
    @classmethod
    def _clamp_workers(cls, value: Any) -> int:
        return max(1, int(value))

    @field_validator("output_file", "log_dir", mode="before")
    @classmethod
    def _coerce_path(cls, value: Any) -> Path | None:
        if value in (None, ""):
            return None
        return Path(value)

    @model_validator(mode="after")
    def _validate_limits(self) -> "HarvestConfig":
        if self.timeout <= 0:
            raise ValueError("timeout must be > 0")
        if self.backoff_seconds < 0:
            raise ValueError("backoff_seconds must be >= 0")
        if self.queue_size < 1:
            raise ValueError("queue_size must be >= 1")
        return self

    @property
    def subdomain_mode(self) -> bool:
        return self.mode is OutputMode.SUBDOMAINS

    def effective_exclude(self) -> list[str]:
        """Resolve the exclude list the way the CLI flags intend it."""

        if self.exclude_defaults:
            return list(DEFAULT_EXCLUDE_EXTENSIONS)
        if self.exclude_ext is None:
            return []
        if not self.exclude_ext:
            return list(DEFAULT_EXCLUDE_EXTENSIONS)
        return list(self.exclude_ext)

    def cdx_pattern(self) -> str:
        return normalize_cdx_pattern(self.url_pattern, self.subdomain_mode)

    def base_domain(self) -> str:
        return derive_base_domain(self.url_pattern)


__all__ = [
    "DEFAULT_CDX_ENDPOINT",
    "DEFAULT_EXCLUDE_EXTENSIONS",
    "HarvestConfig",
    "OutputMode",
    "derive_base_domain",
    "normalize_cdx_pattern",
    "split_extensions",
]
