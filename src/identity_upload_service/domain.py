from datetime import datetime
from typing import Protocol
import re
import time

from pydantic import BaseModel, ConfigDict, Field

from src.identity_upload_service.errors import ErrorCode


DEFAULT_MAX_SIZE_BYTES = 10 * 1024 * 1024
DEFAULT_ALLOWED_MIME_TYPES = frozenset({"image/jpeg", "image/png", "image/webp"})


class UploadRequest(BaseModel):
    content: bytes | None = None
    declared_filename: str = ""
    declared_mime_type: str = ""
    declared_size_bytes: int = Field(default=0, ge=0)


class Principal(BaseModel):
    model_config = ConfigDict(frozen=True)

    principal_id: str


class StoredObjectDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: str
    size_bytes: int
    content_type: str
    storage_timestamp: datetime


class UploadPolicy(BaseModel):
    max_size_bytes: int = DEFAULT_MAX_SIZE_BYTES
    allowed_mime_types: frozenset[str] = DEFAULT_ALLOWED_MIME_TYPES


class ValidationVerdict(BaseModel):
    """Either accepted, or rejected with the reason and the failing constraint."""

    model_config = ConfigDict(frozen=True)

    accepted: bool
    reason: ErrorCode | None = None
    detail: str | None = None

    @classmethod
    def accept(cls) -> "ValidationVerdict":
        return cls(accepted=True)

    @classmethod
    def reject(cls, reason: ErrorCode, detail: str) -> "ValidationVerdict":
        return cls(accepted=False, reason=reason, detail=detail)


class IdentityDocumentStoredEvent(BaseModel):
    document_key: str
    principal_id: str
    bucket: str
    filename: str
    size_bytes: int
    content_type: str
    stored_at: datetime


class IdentityDocumentEventPublisher(Protocol):
    def publish_identity_document_stored(self, event: IdentityDocumentStoredEvent) -> None:
        return


class SubmissionClock(Protocol):
    def now_millis(self) -> int:
        ...


class SystemClock:
    """Wall clock with millisecond resolution."""

    def now_millis(self) -> int:
        return time.time_ns() // 1_000_000


def normalize_mime_type(mime_type: str) -> str:
    return mime_type.split(";", 1)[0].strip().lower()


def validate(request: UploadRequest | None, policy: UploadPolicy) -> ValidationVerdict:
    """
    Check a candidate upload against the admission rules.

    Presence, then size, then media type. The first failing rule wins.
    No I/O happens here.

    Args:
        request: The candidate upload, possibly None.
        policy: Size ceiling and allowed media types.

    Returns:
        ValidationVerdict, accepted or rejected with a reason code.
    """
    if request is None or not request.content:
        return ValidationVerdict.reject(ErrorCode.MISSING_FILE, "A non-empty file is required")

    actual_size = len(request.content)
    if request.declared_size_bytes > policy.max_size_bytes or actual_size > policy.max_size_bytes:
        return ValidationVerdict.reject(
            ErrorCode.FILE_TOO_LARGE,
            f"File must not exceed {policy.max_size_bytes} bytes",
        )

    if normalize_mime_type(request.declared_mime_type) not in policy.allowed_mime_types:
        allowed = ", ".join(sorted(policy.allowed_mime_types))
        return ValidationVerdict.reject(
            ErrorCode.UNSUPPORTED_MEDIA_TYPE,
            f"File type must be one of: {allowed}",
        )

    return ValidationVerdict.accept()


def sanitize_filename(filename: str) -> str:
    """Replace anything outside [A-Za-z0-9._-] (path separators included) with underscores."""
    cleaned = re.sub(r"[^a-zA-Z0-9._-]", "_", filename)
    return cleaned or "document"


def derive_storage_key(
    principal: Principal,
    request: UploadRequest,
    clock: SubmissionClock,
) -> str:
    safe_filename = sanitize_filename(request.declared_filename)
    return f"{principal.principal_id}/{clock.now_millis()}-{safe_filename}"

