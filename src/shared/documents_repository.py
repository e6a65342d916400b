from datetime import datetime

from pymongo import ASCENDING
from pymongo.errors import DuplicateKeyError

from src.shared.exceptions import DocumentReferenceExistsError


class MongoIdentityDocumentsRepository:
    """Insert-only audit trail of stored identity documents in MongoDB."""

    def __init__(self, client, db_name: str = "identity_documents") -> None:
        """Initialize the repository with a MongoDB client and database name.

        Args:
            client: MongoDB client instance.
            db_name: Database name (default: "identity_documents").
        """
        self._collection = client[db_name]["documents"]
        self._collection.create_index([("document_key", ASCENDING)], unique=True)

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
        """Record the reference to a freshly stored document.

        Args:
            document_key: Storage key of the object.
            principal_id: Owner of the document.
            filename: Original filename as declared by the uploader.
            bucket: Bucket holding the object.
            size_bytes: Stored size.
            content_type: Stored content type.
            stored_at: Timestamp reported by the storage write.

        Raises:
            DocumentReferenceExistsError: If the key was already recorded.
        """
        try:
            self._collection.insert_one(
                {
                    "document_key": document_key,
                    "principal_id": principal_id,
                    "filename": filename,
                    "bucket": bucket,
                    "size_bytes": size_bytes,
                    "content_type": content_type,
                    "stored_at": stored_at,
                    "status": "stored",
                }
            )
        except DuplicateKeyError as exc:
            raise DocumentReferenceExistsError(
                f"Document {document_key} is already recorded"
            ) from exc

    def list_for_principal(self, principal_id: str) -> list[dict]:
        """Return the recorded documents owned by a principal, oldest first."""
        cursor = self._collection.find(
            {"principal_id": principal_id},
            {"_id": 0},
        ).sort("stored_at", ASCENDING)
        return list(cursor)
