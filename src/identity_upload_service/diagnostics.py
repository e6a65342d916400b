import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Protocol

from pydantic import BaseModel, Field

from src.identity_upload_service.errors import ErrorCode


class UploadStage(str, Enum):
    RECEIVED = "received"
    VALIDATED = "validated"
    AUTHENTICATED = "authenticated"
    KEY_DERIVED = "key_derived"
    STORED = "stored"
    FAILED = "failed"


class UploadOutcome(str, Enum):
    STARTED = "started"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


class UploadDiagnosticEvent(BaseModel):
    submission_id: str
    stage: UploadStage
    outcome: UploadOutcome
    principal_id: str | None = None
    reason_code: ErrorCode | None = None
    failed_after: UploadStage | None = None
    duration_ms: float | None = None
    key: str | None = None
    escalated: bool = False
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class DiagnosticSink(Protocol):
    def emit(self, event: UploadDiagnosticEvent) -> None:
        return


class LoggingDiagnosticSink(DiagnosticSink):
    """Writes diagnostic events as structured log records.

    Escalated events are repeated on the operator logger at ERROR level.
    """

    def __init__(
        self,
        logger: logging.Logger | None = None,
        operator_logger: logging.Logger | None = None,
    ) -> None:
        self._logger = logger or logging.getLogger("identity_upload.diagnostics")
        self._operator_logger = operator_logger or logging.getLogger("identity_upload.operator")

    def emit(self, event: UploadDiagnosticEvent) -> None:
        payload = event.model_dump(mode="json")
        level = logging.WARNING if event.outcome in (UploadOutcome.FAILED, UploadOutcome.CANCELLED) else logging.INFO
        self._logger.log(
            level,
            "identity upload %s at %s",
            event.outcome.value,
            event.stage.value,
            extra={"structured_data": payload},
        )
        if event.escalated:
            self._operator_logger.error(
                "identity upload needs operator attention: %s",
                event.reason_code.value if event.reason_code else "unknown",
                extra={"structured_data": payload},
            )
