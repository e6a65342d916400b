import time
import uuid

import anyio
from starlette.concurrency import run_in_threadpool

from src.identity_upload_service.auth import (
    AuthServiceUnavailableError,
    SessionProvider,
    resolve_current_principal,
)
from src.identity_upload_service.diagnostics import (
    DiagnosticSink,
    UploadDiagnosticEvent,
    UploadOutcome,
    UploadStage,
)
from src.identity_upload_service.domain import (
    Principal,
    StoredObjectDescriptor,
    SubmissionClock,
    UploadPolicy,
    UploadRequest,
    ValidationVerdict,
    derive_storage_key,
    normalize_mime_type,
    validate,
)
from src.identity_upload_service.errors import (
    ERRORS_BY_CODE,
    AccessDeniedError,
    ErrorCode,
    KeyConflictError,
    NetworkFailureError,
    QuotaExceededError,
    UploadError,
)
from src.identity_upload_service.storage import (
    StorageFailure,
    StorageGateway,
    StorageWriteError,
)


_STORAGE_FAILURES: dict[StorageFailure, type[UploadError]] = {
    StorageFailure.ACCESS_DENIED: AccessDeniedError,
    StorageFailure.QUOTA_EXCEEDED: QuotaExceededError,
    StorageFailure.NETWORK_FAILURE: NetworkFailureError,
    StorageFailure.KEY_CONFLICT: KeyConflictError,
}


def _rejection_error(verdict: ValidationVerdict) -> UploadError:
    return ERRORS_BY_CODE[verdict.reason](verdict.detail)


class IdentityDocumentUploader:
    """Runs one identity document through validation, authentication and storage.

    Holds only immutable collaborators, so a single instance can serve any
    number of concurrent submissions.
    """

    def __init__(
        self,
        gateway: StorageGateway,
        clock: SubmissionClock,
        diagnostics: DiagnosticSink,
        policy: UploadPolicy | None = None,
    ) -> None:
        self._gateway = gateway
        self._clock = clock
        self._diagnostics = diagnostics
        self._policy = policy or UploadPolicy()

    @property
    def policy(self) -> UploadPolicy:
        return self._policy

    async def submit(
        self,
        request: UploadRequest | None,
        session_provider: SessionProvider,
    ) -> StoredObjectDescriptor:
        """
        Admit and store an identity document.

        Args:
            request: The candidate upload.
            session_provider: Authentication collaborator for the caller.

        Returns:
            Descriptor of the stored object.

        Raises:
            UploadError: One subclass per public failure reason. Nothing is
                retried and nothing is cleaned up.
        """
        _, descriptor = await self.submit_with_principal(request, session_provider)
        return descriptor

    async def submit_with_principal(
        self,
        request: UploadRequest | None,
        session_provider: SessionProvider,
    ) -> tuple[Principal, StoredObjectDescriptor]:
        """Same as submit, also returning the principal the object was stored for."""
        submission_id = uuid.uuid4().hex
        started = time.perf_counter()
        self._diagnostics.emit(
            UploadDiagnosticEvent(
                submission_id=submission_id,
                stage=UploadStage.RECEIVED,
                outcome=UploadOutcome.STARTED,
            )
        )

        stage = UploadStage.RECEIVED
        principal: Principal | None = None
        key: str | None = None
        try:
            verdict = validate(request, self._policy)
            if not verdict.accepted:
                raise _rejection_error(verdict)
            stage = UploadStage.VALIDATED

            principal = await self.resolve_principal(session_provider)
            stage = UploadStage.AUTHENTICATED

            key = derive_storage_key(principal, request, self._clock)
            stage = UploadStage.KEY_DERIVED

            descriptor = await run_in_threadpool(self._store, key, request)
        except UploadError as exc:
            self._emit_terminal(
                submission_id,
                started,
                outcome=UploadOutcome.FAILED,
                failed_after=stage,
                principal=principal,
                key=key,
                reason_code=exc.code,
                escalated=exc.escalate,
            )
            raise
        except anyio.get_cancelled_exc_class():
            self._emit_terminal(
                submission_id,
                started,
                outcome=UploadOutcome.CANCELLED,
                failed_after=stage,
                principal=principal,
                key=key,
                reason_code=ErrorCode.NETWORK_FAILURE,
            )
            raise
        except Exception:
            self._emit_terminal(
                submission_id,
                started,
                outcome=UploadOutcome.FAILED,
                failed_after=stage,
                principal=principal,
                key=key,
                escalated=True,
            )
            raise

        self._emit_terminal(
            submission_id,
            started,
            outcome=UploadOutcome.SUCCEEDED,
            principal=principal,
            key=descriptor.key,
        )
        return principal, descriptor

    async def resolve_principal(self, session_provider: SessionProvider) -> Principal:
        """Resolve the caller, raising UnauthenticatedError or NetworkFailureError."""
        try:
            return await run_in_threadpool(resolve_current_principal, session_provider, self._clock)
        except AuthServiceUnavailableError as exc:
            raise NetworkFailureError() from exc

    def _store(self, key: str, request: UploadRequest) -> StoredObjectDescriptor:
        try:
            return self._gateway.put(
                key=key,
                content=request.content,
                content_type=normalize_mime_type(request.declared_mime_type),
                overwrite=False,
            )
        except StorageWriteError as exc:
            raise _STORAGE_FAILURES[exc.failure]() from exc

    def _emit_terminal(
        self,
        submission_id: str,
        started: float,
        outcome: UploadOutcome,
        principal: Principal | None,
        key: str | None,
        failed_after: UploadStage | None = None,
        reason_code: ErrorCode | None = None,
        escalated: bool = False,
    ) -> None:
        succeeded = outcome == UploadOutcome.SUCCEEDED
        self._diagnostics.emit(
            UploadDiagnosticEvent(
                submission_id=submission_id,
                stage=UploadStage.STORED if succeeded else UploadStage.FAILED,
                outcome=outcome,
                principal_id=principal.principal_id if principal else None,
                reason_code=reason_code,
                failed_after=failed_after,
                duration_ms=(time.perf_counter() - started) * 1000,
                key=key,
                escalated=escalated,
            )
        )
