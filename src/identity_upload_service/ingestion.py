from typing import Protocol
from datetime import datetime

from starlette.concurrency import run_in_threadpool

from src.identity_upload_service.auth import SessionProvider
from src.identity_upload_service.domain import (
    IdentityDocumentEventPublisher,
    IdentityDocumentStoredEvent,
    StoredObjectDescriptor,
    UploadRequest,
)
from src.identity_upload_service.orchestrator import IdentityDocumentUploader


class IdentityDocumentsRepository(Protocol):
    def record_stored(
        self,
        document_key: str,
        principal_id: str,
        filename: str,
        bucket: str,
        size_bytes: int,
        content_type: str,
        stored_at: datetime,
    ) -> None:
        ...

    def list_for_principal(self, principal_id: str) -> list[dict]:
        ...


async def ingest_identity_document(
    uploader: IdentityDocumentUploader,
    repository: IdentityDocumentsRepository,
    publisher: IdentityDocumentEventPublisher,
    bucket: str,
    request: UploadRequest | None,
    session_provider: SessionProvider,
) -> StoredObjectDescriptor:
    """
    Store an identity document, record its reference and announce it.

    Args:
        uploader: Admission pipeline that performs the storage write.
        repository: Audit trail of stored documents.
        publisher: Publisher for IdentityDocumentStoredEvent.
        bucket: Bucket the uploader writes to, recorded alongside the key.
        request: The candidate upload.
        session_provider: Authentication collaborator for the caller.

    Returns:
        Descriptor of the stored object.

    Raises:
        UploadError: Admission or storage failed; nothing was recorded.
        Any exception from repository or publisher (caller should handle as 500).
            The stored object is left in place.
    """
    principal, descriptor = await uploader.submit_with_principal(request, session_provider)
    principal_id = principal.principal_id

    await run_in_threadpool(
        repository.record_stored,
        document_key=descriptor.key,
        principal_id=principal_id,
        filename=request.declared_filename,
        bucket=bucket,
        size_bytes=descriptor.size_bytes,
        content_type=descriptor.content_type,
        stored_at=descriptor.storage_timestamp,
    )

    event = IdentityDocumentStoredEvent(
        document_key=descriptor.key,
        principal_id=principal_id,
        bucket=bucket,
        filename=request.declared_filename,
        size_bytes=descriptor.size_bytes,
        content_type=descriptor.content_type,
        stored_at=descriptor.storage_timestamp,
    )
    await run_in_threadpool(publisher.publish_identity_document_stored, event)

    return descriptor
