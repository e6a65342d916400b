import pytest
import mongomock

from src.identity_upload_service.domain import (
    IdentityDocumentEventPublisher,
    IdentityDocumentStoredEvent,
)


class FakeIdentityDocumentEventPublisher(IdentityDocumentEventPublisher):
    """Global fake publisher for identity upload tests."""
    def __init__(self) -> None:
        self.published: list[IdentityDocumentStoredEvent] = []

    def publish_identity_document_stored(self, event: IdentityDocumentStoredEvent) -> None:
        self.published.append(event)


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def fake_event_publisher() -> FakeIdentityDocumentEventPublisher:
    """Global fixture for FakeIdentityDocumentEventPublisher."""
    return FakeIdentityDocumentEventPublisher()


@pytest.fixture
def mongo_client():
    """Global fixture for mocking MongoDB."""
    return mongomock.MongoClient()


@pytest.fixture
def mock_channel(mocker):
    return mocker.MagicMock()


@pytest.fixture
def mock_connection(mocker, mock_channel):
    connection = mocker.MagicMock()
    connection.channel.return_value = mock_channel
    return connection
