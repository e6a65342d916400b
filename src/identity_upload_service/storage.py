from datetime import datetime, timezone
from enum import Enum
from typing import Protocol

import boto3
from botocore.client import BaseClient
from botocore.exceptions import (
    ClientError,
    ConnectionError as BotoConnectionError,
    HTTPClientError,
    NoCredentialsError,
)

from src.identity_upload_service.config import S3Config
from src.identity_upload_service.domain import StoredObjectDescriptor


class StorageFailure(str, Enum):
    ACCESS_DENIED = "access_denied"
    QUOTA_EXCEEDED = "quota_exceeded"
    NETWORK_FAILURE = "network_failure"
    KEY_CONFLICT = "key_conflict"


class StorageWriteError(Exception):
    """Raised by a StorageGateway when a write did not land."""

    def __init__(self, failure: StorageFailure, detail: str = "") -> None:
        self.failure = failure
        self.detail = detail
        super().__init__(f"{failure.value}: {detail}" if detail else failure.value)


class StorageGateway(Protocol):
    """Abstract interface for durable object storage (MinIO, S3, etc.)."""

    def put(
        self,
        key: str,
        content: bytes,
        content_type: str,
        overwrite: bool = False,
    ) -> StoredObjectDescriptor:
        """Write an object.

        Args:
            key: Object key (path within the bucket).
            content: Object bytes.
            content_type: Stored as object metadata.
            overwrite: When False an existing key is a KEY_CONFLICT.

        Raises:
            StorageWriteError: The write did not happen.
        """
        ...


_KEY_CONFLICT_CODES = {"PreconditionFailed", "ConditionalRequestConflict"}
_ACCESS_DENIED_CODES = {
    "AccessDenied",
    "AllAccessDisabled",
    "InvalidAccessKeyId",
    "SignatureDoesNotMatch",
    "AccountProblem",
}
_QUOTA_CODES = {
    "QuotaExceeded",
    "XMinioAdminBucketQuotaExceeded",
    "XMinioStorageFull",
    "ServiceQuotaExceededException",
}
_NETWORK_CODES = {
    "SlowDown",
    "ServiceUnavailable",
    "InternalError",
    "RequestTimeout",
    "RequestTimeTooSkewed",
}


def classify_client_error(exc: ClientError) -> StorageFailure | None:
    """Map an S3 error response onto a StorageFailure, None if it does not fit any."""
    error = exc.response.get("Error", {})
    code = error.get("Code", "")
    status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode")

    if code in _KEY_CONFLICT_CODES or status in (409, 412):
        return StorageFailure.KEY_CONFLICT
    if code in _QUOTA_CODES:
        return StorageFailure.QUOTA_EXCEEDED
    if code in _ACCESS_DENIED_CODES or status == 403:
        return StorageFailure.ACCESS_DENIED
    if code in _NETWORK_CODES or (status is not None and status >= 500):
        return StorageFailure.NETWORK_FAILURE
    return None


class S3StorageGateway(StorageGateway):
    """Writes private objects to an S3-compatible bucket without ever overwriting."""

    def __init__(
        self,
        client: BaseClient,
        bucket: str,
        cache_control: str = "private, max-age=3600",
    ) -> None:
        self._client = client
        self._bucket = bucket
        self._cache_control = cache_control

    @property
    def bucket(self) -> str:
        return self._bucket

    def put(
        self,
        key: str,
        content: bytes,
        content_type: str,
        overwrite: bool = False,
    ) -> StoredObjectDescriptor:
        params = {
            "Bucket": self._bucket,
            "Key": key,
            "Body": content,
            "ContentType": content_type,
            "CacheControl": self._cache_control,
            "ACL": "private",
        }
        if not overwrite:
            params["IfNoneMatch"] = "*"

        try:
            self._client.put_object(**params)
        except ClientError as exc:
            failure = classify_client_error(exc)
            if failure is None:
                raise
            raise StorageWriteError(failure, exc.response.get("Error", {}).get("Code", "")) from exc
        except NoCredentialsError as exc:
            raise StorageWriteError(StorageFailure.ACCESS_DENIED, "no credentials") from exc
        except (BotoConnectionError, HTTPClientError) as exc:
            raise StorageWriteError(StorageFailure.NETWORK_FAILURE, str(exc)) from exc

        return StoredObjectDescriptor(
            key=key,
            size_bytes=len(content),
            content_type=content_type,
            storage_timestamp=datetime.now(timezone.utc),
        )


def create_s3_client(config: S3Config) -> BaseClient:
    if not config.access_key or not config.secret_key:
        raise ValueError("S3 credentials missing: set S3_ACCESS_KEY_ID and S3_SECRET_ACCESS_KEY")

    return boto3.client(
        "s3",
        region_name=config.region,
        aws_access_key_id=config.access_key,
        aws_secret_access_key=config.secret_key,
        endpoint_url=config.endpoint_url,
    )
