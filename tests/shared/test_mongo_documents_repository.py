import pytest
from datetime import datetime
from src.shared.documents_repository import MongoIdentityDocumentsRepository
from src.shared.exceptions import DocumentReferenceExistsError


@pytest.fixture
def repository(mongo_client):
    """Create a MongoIdentityDocumentsRepository instance with a clean database."""
    mongo_client["identity_documents"]["documents"].delete_many({})
    return MongoIdentityDocumentsRepository(client=mongo_client)


def _record(repository, document_key: str, principal_id: str = "user-42", stored_at=None) -> None:
    repository.record_stored(
        document_key=document_key,
        principal_id=principal_id,
        filename="front.jpg",
        bucket="identity-documents",
        size_bytes=500000,
        content_type="image/jpeg",
        stored_at=stored_at or datetime(2023, 11, 14, 22, 13, 20),
    )


@pytest.mark.unit
def test_should_insert_reference_with_stored_status(repository, mongo_client) -> None:
    _record(repository, "user-42/1700000000000-front.jpg")

    collection = mongo_client["identity_documents"]["documents"]
    documents = list(collection.find({"document_key": "user-42/1700000000000-front.jpg"}))

    assert len(documents) == 1
    doc = documents[0]
    assert doc["principal_id"] == "user-42"
    assert doc["filename"] == "front.jpg"
    assert doc["bucket"] == "identity-documents"
    assert doc["size_bytes"] == 500000
    assert doc["content_type"] == "image/jpeg"
    assert doc["status"] == "stored"


@pytest.mark.unit
def test_should_refuse_to_record_same_key_twice(repository, mongo_client) -> None:
    _record(repository, "user-42/1700000000000-front.jpg")

    with pytest.raises(DocumentReferenceExistsError):
        _record(repository, "user-42/1700000000000-front.jpg", principal_id="user-7")

    collection = mongo_client["identity_documents"]["documents"]
    documents = list(collection.find({"document_key": "user-42/1700000000000-front.jpg"}))
    assert len(documents) == 1
    assert documents[0]["principal_id"] == "user-42"


@pytest.mark.unit
def test_should_list_only_documents_of_given_principal_oldest_first(repository) -> None:
    _record(repository, "user-42/1700000000002-back.jpg", stored_at=datetime(2023, 11, 15))
    _record(repository, "user-42/1700000000001-front.jpg", stored_at=datetime(2023, 11, 14))
    _record(repository, "user-7/1700000000000-front.jpg", principal_id="user-7")

    documents = repository.list_for_principal("user-42")

    assert [doc["document_key"] for doc in documents] == [
        "user-42/1700000000001-front.jpg",
        "user-42/1700000000002-back.jpg",
    ]
    assert all("_id" not in doc for doc in documents)


@pytest.mark.unit
def test_should_return_empty_list_for_unknown_principal(repository) -> None:
    assert repository.list_for_principal("nobody") == []
