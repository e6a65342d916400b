import pytest
from datetime import datetime, timezone
from fastapi.testclient import TestClient

from src.identity_upload_service.app import create_app
from src.identity_upload_service.auth import Session, SessionProvider
from src.identity_upload_service.diagnostics import DiagnosticSink, UploadDiagnosticEvent
from src.identity_upload_service.domain import (
    StoredObjectDescriptor,
    UploadPolicy,
    UploadRequest,
)
from src.identity_upload_service.orchestrator import IdentityDocumentUploader
from src.identity_upload_service.storage import (
    StorageFailure,
    StorageGateway,
    StorageWriteError,
)
from src.shared.documents_repository import MongoIdentityDocumentsRepository
from tests.conftest import FakeIdentityDocumentEventPublisher


VALID_TOKEN = "valid-token"
PRINCIPAL_ID = "user-42"
BUCKET = "identity-documents"


class FakeClock:
    """Clock that advances by a fixed step on every read."""
    def __init__(self, start: int = 1700000000000, step: int = 1) -> None:
        self._next = start
        self._step = step
        self.calls = 0

    def now_millis(self) -> int:
        self.calls += 1
        value = self._next
        self._next += self._step
        return value


class FakeSessionProvider(SessionProvider):
    def __init__(self, session: Session | None) -> None:
        self._session = session
        self.calls = 0

    def get_current_session(self) -> Session | None:
        self.calls += 1
        return self._session


class FakeStorageGateway(StorageGateway):
    """In-memory gateway that refuses to overwrite existing keys."""
    def __init__(self, failure: StorageFailure | None = None) -> None:
        self.objects: dict[str, bytes] = {}
        self.puts: list[dict] = []
        self._failure = failure

    def put(
        self,
        key: str,
        content: bytes,
        content_type: str,
        overwrite: bool = False,
    ) -> StoredObjectDescriptor:
        self.puts.append({
            "key": key,
            "content_length": len(content),
            "content_type": content_type,
            "overwrite": overwrite,
        })
        if self._failure is not None:
            raise StorageWriteError(self._failure, "injected")
        if key in self.objects and not overwrite:
            raise StorageWriteError(StorageFailure.KEY_CONFLICT, key)
        self.objects[key] = content
        return StoredObjectDescriptor(
            key=key,
            size_bytes=len(content),
            content_type=content_type,
            storage_timestamp=datetime.now(timezone.utc),
        )


class RecordingDiagnosticSink(DiagnosticSink):
    def __init__(self) -> None:
        self.events: list[UploadDiagnosticEvent] = []

    def emit(self, event: UploadDiagnosticEvent) -> None:
        self.events.append(event)


def make_request(
    content: bytes | None = b"\xff\xd8jpeg-bytes",
    filename: str = "front.jpg",
    mime_type: str = "image/jpeg",
    declared_size: int | None = None,
) -> UploadRequest:
    if declared_size is None:
        declared_size = len(content) if content else 0
    return UploadRequest(
        content=content,
        declared_filename=filename,
        declared_mime_type=mime_type,
        declared_size_bytes=declared_size,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def session_provider() -> FakeSessionProvider:
    return FakeSessionProvider(Session(principal_id=PRINCIPAL_ID))


@pytest.fixture
def anonymous_session_provider() -> FakeSessionProvider:
    return FakeSessionProvider(None)


@pytest.fixture
def fake_gateway() -> FakeStorageGateway:
    return FakeStorageGateway()


@pytest.fixture
def diagnostics() -> RecordingDiagnosticSink:
    return RecordingDiagnosticSink()


@pytest.fixture
def policy() -> UploadPolicy:
    return UploadPolicy()


@pytest.fixture
def uploader(
    fake_gateway: FakeStorageGateway,
    clock: FakeClock,
    diagnostics: RecordingDiagnosticSink,
    policy: UploadPolicy,
) -> IdentityDocumentUploader:
    return IdentityDocumentUploader(
        gateway=fake_gateway,
        clock=clock,
        diagnostics=diagnostics,
        policy=policy,
    )


@pytest.fixture
def repository(mongo_client) -> MongoIdentityDocumentsRepository:
    return MongoIdentityDocumentsRepository(client=mongo_client)


def session_provider_factory(token: str | None) -> SessionProvider:
    if token == VALID_TOKEN:
        return FakeSessionProvider(Session(principal_id=PRINCIPAL_ID))
    return FakeSessionProvider(None)


@pytest.fixture
def auth_headers() -> dict:
    return {"Authorization": f"Bearer {VALID_TOKEN}"}


@pytest.fixture
def client(
    uploader: IdentityDocumentUploader,
    repository: MongoIdentityDocumentsRepository,
    fake_event_publisher: FakeIdentityDocumentEventPublisher,
) -> TestClient:
    """Create FastAPI test client with injected fake dependencies."""
    app = create_app(
        uploader=uploader,
        repository=repository,
        publisher=fake_event_publisher,
        session_provider_factory=session_provider_factory,
        bucket=BUCKET,
    )
    return TestClient(app)
