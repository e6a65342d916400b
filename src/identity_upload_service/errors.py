"""Public error taxonomy for identity document submissions."""
from enum import Enum


class ErrorCode(str, Enum):
    MISSING_FILE = "MISSING_FILE"
    FILE_TOO_LARGE = "FILE_TOO_LARGE"
    UNSUPPORTED_MEDIA_TYPE = "UNSUPPORTED_MEDIA_TYPE"
    UNAUTHENTICATED = "UNAUTHENTICATED"
    ACCESS_DENIED = "ACCESS_DENIED"
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"
    NETWORK_FAILURE = "NETWORK_FAILURE"
    KEY_CONFLICT = "KEY_CONFLICT"


class ErrorCategory(str, Enum):
    CLIENT_INPUT = "client_input"
    AUTHORIZATION = "authorization"
    ENVIRONMENT = "environment"


class UploadError(Exception):
    """Base class for every failure a caller of ``submit`` can observe.

    Attributes:
        code: Machine readable reason.
        category: Which side of the system is responsible.
        retryable: Whether the caller may resubmit unchanged (with a fresh key).
        escalate: Whether the failure must reach the operator channel.
    """

    code: ErrorCode
    category: ErrorCategory
    retryable = False
    escalate = False
    default_message = "Upload failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"code": self.code.value, "message": self.message}


class MissingFileError(UploadError):
    code = ErrorCode.MISSING_FILE
    category = ErrorCategory.CLIENT_INPUT
    default_message = "No file was provided or the file is empty"


class FileTooLargeError(UploadError):
    code = ErrorCode.FILE_TOO_LARGE
    category = ErrorCategory.CLIENT_INPUT
    default_message = "File exceeds the maximum allowed size"


class UnsupportedMediaTypeError(UploadError):
    code = ErrorCode.UNSUPPORTED_MEDIA_TYPE
    category = ErrorCategory.CLIENT_INPUT
    default_message = "File type is not supported"


class UnauthenticatedError(UploadError):
    code = ErrorCode.UNAUTHENTICATED
    category = ErrorCategory.AUTHORIZATION
    default_message = "Authentication required"


class AccessDeniedError(UploadError):
    code = ErrorCode.ACCESS_DENIED
    category = ErrorCategory.AUTHORIZATION
    default_message = "Access denied"


class QuotaExceededError(UploadError):
    code = ErrorCode.QUOTA_EXCEEDED
    category = ErrorCategory.ENVIRONMENT
    escalate = True
    default_message = "Storage quota exceeded"


class NetworkFailureError(UploadError):
    code = ErrorCode.NETWORK_FAILURE
    category = ErrorCategory.ENVIRONMENT
    retryable = True
    default_message = "A dependent service is unavailable, please retry"


class KeyConflictError(UploadError):
    code = ErrorCode.KEY_CONFLICT
    category = ErrorCategory.ENVIRONMENT
    escalate = True
    default_message = "A document already exists under the derived key"


ERRORS_BY_CODE: dict[ErrorCode, type[UploadError]] = {
    cls.code: cls
    for cls in (
        MissingFileError,
        FileTooLargeError,
        UnsupportedMediaTypeError,
        UnauthenticatedError,
        AccessDeniedError,
        QuotaExceededError,
        NetworkFailureError,
        KeyConflictError,
    )
}
