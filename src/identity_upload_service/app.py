import logging
from datetime import datetime
from typing import Callable

from fastapi import Depends, FastAPI, File, Request, UploadFile, status
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool

from src.identity_upload_service.auth import SessionProvider
from src.identity_upload_service.domain import (
    IdentityDocumentEventPublisher,
    StoredObjectDescriptor,
    UploadRequest,
)
from src.identity_upload_service.errors import ErrorCode, UploadError
from src.identity_upload_service.ingestion import (
    IdentityDocumentsRepository,
    ingest_identity_document,
)
from src.identity_upload_service.orchestrator import IdentityDocumentUploader


logger = logging.getLogger(__name__)

SessionProviderFactory = Callable[[str | None], SessionProvider]

_STATUS_BY_CODE = {
    ErrorCode.MISSING_FILE: 400,
    ErrorCode.FILE_TOO_LARGE: 413,
    ErrorCode.UNSUPPORTED_MEDIA_TYPE: 415,
    ErrorCode.UNAUTHENTICATED: 401,
    ErrorCode.ACCESS_DENIED: 403,
    ErrorCode.QUOTA_EXCEEDED: 507,
    ErrorCode.NETWORK_FAILURE: 503,
    ErrorCode.KEY_CONFLICT: 409,
}


class IdentityDocumentSummary(BaseModel):
    document_key: str
    filename: str
    size_bytes: int
    content_type: str
    stored_at: datetime
    status: str


def create_app(
    uploader: IdentityDocumentUploader,
    repository: IdentityDocumentsRepository,
    publisher: IdentityDocumentEventPublisher,
    session_provider_factory: SessionProviderFactory,
    bucket: str,
) -> FastAPI:
    app = FastAPI(title="Identity Document Upload Service")
    bearer = HTTPBearer(auto_error=False)

    @app.exception_handler(UploadError)
    async def handle_upload_error(request: Request, exc: UploadError) -> JSONResponse:
        headers = {"WWW-Authenticate": "Bearer"} if exc.code == ErrorCode.UNAUTHENTICATED else None
        return JSONResponse(
            status_code=_STATUS_BY_CODE[exc.code],
            content=exc.to_dict(),
            headers=headers,
        )

    def session_provider_for(
        credentials: HTTPAuthorizationCredentials | None = Depends(bearer),
    ) -> SessionProvider:
        return session_provider_factory(credentials.credentials if credentials else None)

    @app.get("/health")
    def health_check():
        return {"status": "ok"}

    @app.post(
        "/identity-documents",
        status_code=status.HTTP_201_CREATED,
        response_model=StoredObjectDescriptor,
    )
    async def upload_identity_document(
        file: UploadFile | None = File(None),
        session_provider: SessionProvider = Depends(session_provider_for),
    ):
        """Upload an identity document image for the authenticated caller."""
        request = None
        if file is not None:
            # One byte past the ceiling is enough to reject oversized bodies.
            content = await file.read(uploader.policy.max_size_bytes + 1)
            request = UploadRequest(
                content=content,
                declared_filename=file.filename or "",
                declared_mime_type=file.content_type or "",
                declared_size_bytes=file.size if file.size is not None else len(content),
            )

        try:
            return await ingest_identity_document(
                uploader=uploader,
                repository=repository,
                publisher=publisher,
                bucket=bucket,
                request=request,
                session_provider=session_provider,
            )
        except UploadError:
            raise
        except Exception:
            logger.exception("identity document ingestion failed")
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={"code": "INTERNAL_ERROR", "message": "Service unavailable"},
            )

    @app.get("/identity-documents", response_model=list[IdentityDocumentSummary])
    async def list_identity_documents(
        session_provider: SessionProvider = Depends(session_provider_for),
    ):
        principal = await uploader.resolve_principal(session_provider)
        documents = await run_in_threadpool(repository.list_for_principal, principal.principal_id)
        return [IdentityDocumentSummary(**doc) for doc in documents]

    return app
