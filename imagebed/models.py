"""Record types passed between pipeline stages.

Every stage takes and returns explicit types instead of loose dicts:
``UploadCandidate`` travels through the pipeline, each stage returns a
``Result`` that holds either its value or a tagged ``Failure``, and the
gallery persists ``GalleryRecord`` objects. Pydantic models are used for
anything that is serialised to JSON; plain dataclasses for in-flight
values.
"""

from __future__ import annotations

import io
from dataclasses import dataclass, field
from enum import Enum
from pathlib import PurePath
from typing import Any, BinaryIO, Generic, List, Optional, Tuple, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


class FailureKind(str, Enum):
    NO_FILE = "no_file"
    UPLOAD_ERROR = "upload_error"
    INVALID_TYPE = "invalid_type"
    FILE_TOO_LARGE = "file_too_large"
    UNSUPPORTED_FORMAT = "unsupported_format"
    DECODE_FAILED = "decode_failed"
    ENCODE_FAILED = "encode_failed"
    CODEC_UNAVAILABLE = "codec_unavailable"
    TARGET_UNREACHABLE = "target_unreachable"
    TRANSPORT = "transport"
    HTTP_STATUS = "http_status"
    PARSE = "parse"
    REMOTE_REJECTED = "remote_rejected"
    MALFORMED_RESPONSE = "malformed_response"
    RATE_LIMITED = "rate_limited"
    IP_BLOCKED = "ip_blocked"
    NOT_FOUND = "not_found"
    NO_CHANGES = "no_changes"
    MISSING_PARAMETER = "missing_parameter"
    UNKNOWN_ACTION = "unknown_action"
    STORAGE = "storage"
    PROCESSING = "processing"


MESSAGES = {
    FailureKind.NO_FILE: "No file was uploaded or the upload failed",
    FailureKind.UPLOAD_ERROR: "File upload error",
    FailureKind.INVALID_TYPE: "Unsupported file type, only JPG, PNG, GIF and WebP are accepted",
    FailureKind.FILE_TOO_LARGE: "File is too large",
    FailureKind.RATE_LIMITED: "Too many requests, please try again later",
    FailureKind.IP_BLOCKED: "Access from this IP address is not allowed",
    FailureKind.TRANSPORT: "Network error",
    FailureKind.HTTP_STATUS: "HTTP error",
    FailureKind.PARSE: "Could not parse the response",
    FailureKind.REMOTE_REJECTED: "The image host returned an error",
    FailureKind.MALFORMED_RESPONSE: "Unexpected response format",
    FailureKind.NOT_FOUND: "Entry not found",
    FailureKind.NO_CHANGES: "No changes",
    FailureKind.UNKNOWN_ACTION: "Unknown action",
    FailureKind.STORAGE: "Write failed",
    FailureKind.PROCESSING: "An error occurred while processing this file",
}


def message_for(kind: FailureKind) -> str:
    return MESSAGES.get(kind, "Unknown error")


@dataclass(frozen=True)
class Failure:
    kind: FailureKind
    message: str
    detail: Any = None


@dataclass(frozen=True)
class Result(Generic[T]):
    """Either a value or a failure, never both."""

    value: Optional[T] = None
    failure: Optional[Failure] = None

    @property
    def ok(self) -> bool:
        return self.failure is None

    @classmethod
    def success(cls, value: T = None) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def fail(cls, kind: FailureKind, message: Optional[str] = None, detail: Any = None) -> "Result[T]":
        return cls(failure=Failure(kind, message or message_for(kind), detail))


@dataclass
class UploadCandidate:
    """An image in transit through the pipeline.

    Each transform stage hands back a new candidate whose name, type,
    size and source replace the previous ones wholesale.
    """

    name: str
    mime_type: str
    size: int
    source: BinaryIO
    original_name: str = ""

    def __post_init__(self) -> None:
        if not self.original_name:
            self.original_name = self.name

    @classmethod
    def from_bytes(cls, name: str, mime_type: str, data: bytes) -> "UploadCandidate":
        return cls(name=name, mime_type=mime_type, size=len(data), source=io.BytesIO(data))

    def read(self) -> bytes:
        self.source.seek(0)
        return self.source.read()

    def replace(self, name: str, mime_type: str, data: bytes) -> "UploadCandidate":
        return UploadCandidate(
            name=name,
            mime_type=mime_type,
            size=len(data),
            source=io.BytesIO(data),
            original_name=self.original_name,
        )

    @property
    def stem(self) -> str:
        return PurePath(self.name).stem

    @property
    def extension(self) -> str:
        return PurePath(self.name).suffix.lstrip(".")


@dataclass
class CompressionResult:
    candidate: UploadCandidate
    original_size: int
    quality: Optional[int] = None
    scale: float = 1.0
    trail: List[Tuple[float, int]] = field(default_factory=list)

    @property
    def compressed(self) -> bool:
        return bool(self.trail)


class UploadData(BaseModel):
    """Result payload obtained from the remote image host."""

    model_config = ConfigDict(populate_by_name=True)

    url: str
    file_name: str = Field(alias="fileName")
    size: str
    pix: str = "unknown"
    file_id: str = Field("", alias="fileId")
    quality: int = 100


class GalleryRecord(BaseModel):
    """One catalogued upload as persisted in the gallery file."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    file_name: str = Field(alias="fileName")
    url: str
    size: str
    upload_time: str = Field(alias="uploadTime")
    category: str


def format_file_size(size: int) -> str:
    """Render a byte count as ``B``/``KB``/``MB``/``GB`` with two decimals."""
    size = int(size)
    if size < 1024:
        return f"{size} B"
    if size < 1024**2:
        return f"{_trim(size / 1024)} KB"
    if size < 1024**3:
        return f"{_trim(size / 1024**2)} MB"
    return f"{_trim(size / 1024**3)} GB"


def _trim(value: float) -> str:
    # 1.50 -> "1.5", 2.00 -> "2"
    return f"{round(value, 2):.2f}".rstrip("0").rstrip(".")
