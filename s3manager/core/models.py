"""
Domain models for the object storage browser.

These are pass-through representations of what the storage provider returns.
They are fetched, rendered and discarded per request, so none of them carry
an identity or lifecycle of their own. Nothing here imports boto3 or FastAPI.
"""

import posixpath
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Iterator, Optional


# SSE-C keys are raw AES-256 keys
SSE_C_KEY_LENGTH = 32


class SignatureType(Enum):
    """Request signing scheme used against the storage endpoint."""
    V2 = "V2"
    V4 = "V4"
    V4_STREAMING = "V4Streaming"
    ANONYMOUS = "Anonymous"

    @classmethod
    def from_string(cls, value: str) -> "SignatureType":
        """
        Build a signature type from its configuration string.

        Matching is exact ("V4Streaming", not "v4streaming") so a typo in the
        configuration fails loudly instead of silently picking a default.
        """
        for member in cls:
            if member.value == value:
                return member
        raise ValueError(f"Invalid SIGNATURE_TYPE: {value}")


class SSEType(Enum):
    """Server-side encryption modes supported for uploads."""
    NONE = ""
    SSE = "SSE"        # provider-managed keys (AES256)
    KMS = "KMS"        # aws:kms with a key id
    SSE_C = "SSE-C"    # customer-provided key


@dataclass(frozen=True)
class SSEConfig:
    """
    Server-side encryption descriptor applied to uploads.

    Frozen because it is built once from configuration and shared by every
    request handler.
    """
    type: SSEType = SSEType.NONE
    key: str = ""

    def __post_init__(self) -> None:
        if self.type is SSEType.KMS and not self.key:
            raise ValueError("SSE_KEY is required for KMS encryption")
        if self.type is SSEType.SSE_C and len(self.key.encode("utf-8")) != SSE_C_KEY_LENGTH:
            raise ValueError(f"SSE_KEY must be {SSE_C_KEY_LENGTH} bytes for SSE-C encryption")

    @classmethod
    def from_settings(cls, sse_type: str, sse_key: str) -> "SSEConfig":
        try:
            parsed = SSEType(sse_type)
        except ValueError:
            raise ValueError(f"Invalid SSE_TYPE: {sse_type}")
        return cls(type=parsed, key=sse_key)

    @property
    def enabled(self) -> bool:
        return self.type is not SSEType.NONE

    @property
    def is_customer_key(self) -> bool:
        return self.type is SSEType.SSE_C


@dataclass(frozen=True)
class Bucket:
    """A bucket as listed by the provider (or injected from the shared list)."""
    name: str
    creation_date: Optional[datetime] = None

    @property
    def has_creation_date(self) -> bool:
        return self.creation_date is not None


# Extension -> icon name (Material Icons ligatures)
_ICONS_BY_EXTENSION = {
    ".pdf": "picture_as_pdf",
    ".png": "photo",
    ".jpg": "photo",
    ".jpeg": "photo",
    ".gif": "photo",
    ".svg": "photo",
    ".webp": "photo",
    ".mp3": "music_note",
    ".wav": "music_note",
    ".flac": "music_note",
    ".mp4": "movie",
    ".mov": "movie",
    ".avi": "movie",
    ".webm": "movie",
    ".zip": "archive",
    ".gz": "archive",
    ".tar": "archive",
    ".7z": "archive",
    ".rar": "archive",
    ".txt": "description",
    ".md": "description",
    ".csv": "table_chart",
    ".json": "code",
    ".yaml": "code",
    ".yml": "code",
    ".html": "code",
    ".py": "code",
}

FOLDER_ICON = "folder"
DEFAULT_ICON = "insert_drive_file"


def icon_for_key(key: str) -> str:
    """Pick a display icon from the object key."""
    if key.endswith("/"):
        return FOLDER_ICON
    _, ext = posixpath.splitext(key)
    return _ICONS_BY_EXTENSION.get(ext.lower(), DEFAULT_ICON)


@dataclass
class ObjectInfo:
    """
    An object (or a folder-like common prefix) inside a bucket.

    `prefix` is the listing prefix the object was found under. It only
    affects `display_name`, which is what the browser shows in a folder view.
    """
    key: str
    size: int = 0
    last_modified: Optional[datetime] = None
    storage_class: Optional[str] = None
    owner: Optional[str] = None
    prefix: str = ""

    @property
    def is_folder(self) -> bool:
        return self.key.endswith("/")

    @property
    def display_name(self) -> str:
        name = self.key
        if self.prefix and name.startswith(self.prefix):
            name = name[len(self.prefix):]
        return name.rstrip("/")

    @property
    def icon(self) -> str:
        return icon_for_key(self.key)

    @property
    def filename(self) -> str:
        """Last path segment, used for Content-Disposition."""
        return posixpath.basename(self.key.rstrip("/")) or self.key


@dataclass
class ObjectContent:
    """A downloaded object: metadata plus a chunk iterator over the body."""
    info: ObjectInfo
    body: Iterator[bytes]
    content_type: str = "application/octet-stream"
    content_length: Optional[int] = None


@dataclass
class Breadcrumb:
    """One segment of the folder path shown above the object table."""
    name: str
    prefix: str


def build_breadcrumbs(prefix: str) -> list[Breadcrumb]:
    """
    Split a listing prefix into clickable path segments.

    Empty segments are dropped, so "a//b/" yields crumbs for "a" and "b".
    Each crumb's prefix ends with "/" so it links to a folder view.
    """
    crumbs: list[Breadcrumb] = []
    current = ""
    for segment in prefix.split("/"):
        if not segment:
            continue
        current = f"{current}{segment}/"
        crumbs.append(Breadcrumb(name=segment, prefix=current))
    return crumbs


@dataclass
class BucketListing:
    """Everything the bucket page needs for one folder view."""
    bucket_name: str
    prefix: str
    objects: list[ObjectInfo] = field(default_factory=list)

    @property
    def breadcrumbs(self) -> list[Breadcrumb]:
        return build_breadcrumbs(self.prefix)
