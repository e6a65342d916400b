import os

from pydantic import BaseModel

from src.identity_upload_service.auth import AuthServiceConfig
from src.identity_upload_service.domain import (
    DEFAULT_ALLOWED_MIME_TYPES,
    DEFAULT_MAX_SIZE_BYTES,
    UploadPolicy,
)
from src.identity_upload_service.rabbitmq_publisher import RabbitMQConfig


class S3Config(BaseModel):
    endpoint_url: str | None
    access_key: str
    secret_key: str
    region: str
    bucket: str = "identity-documents"
    cache_control: str = "private, max-age=3600"


class MongoConfig(BaseModel):
    uri: str
    db_name: str


class IdentityUploadConfig(BaseModel):
    policy: UploadPolicy
    storage: S3Config
    auth: AuthServiceConfig
    publisher: RabbitMQConfig
    mongo: MongoConfig
    log_level: str = "INFO"


def _get_env(name: str) -> str | None:
    value = os.getenv(name)
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


def get_upload_policy() -> UploadPolicy:
    max_size_bytes = int(os.getenv("IDENTITY_UPLOAD_MAX_BYTES", str(DEFAULT_MAX_SIZE_BYTES)))
    allowed_raw = _get_env("IDENTITY_UPLOAD_ALLOWED_MIME_TYPES")
    if allowed_raw is None:
        allowed = DEFAULT_ALLOWED_MIME_TYPES
    else:
        allowed = frozenset(
            item.strip().lower() for item in allowed_raw.split(",") if item.strip()
        )

    return UploadPolicy(max_size_bytes=max_size_bytes, allowed_mime_types=allowed)


def get_s3_config() -> S3Config:
    return S3Config(
        endpoint_url=_get_env("S3_ENDPOINT_URL") or "http://localhost:9000",
        access_key=os.getenv("S3_ACCESS_KEY_ID", "minioadmin"),
        secret_key=os.getenv("S3_SECRET_ACCESS_KEY", "minioadmin"),
        region=os.getenv("S3_REGION", "us-east-1"),
        bucket=os.getenv("S3_BUCKET", "identity-documents"),
        cache_control=os.getenv("S3_CACHE_CONTROL", "private, max-age=3600"),
    )


def get_auth_config() -> AuthServiceConfig:
    return AuthServiceConfig(
        base_url=os.getenv("AUTH_BASE_URL", "http://localhost:9999/auth/v1"),
        api_key=_get_env("AUTH_API_KEY"),
        timeout_seconds=float(os.getenv("AUTH_TIMEOUT_SECONDS", "10")),
    )


def get_rabbitmq_config() -> RabbitMQConfig:
    host = os.getenv("RABBITMQ_HOST", "rabbitmq")
    port = int(os.getenv("RABBITMQ_PORT", "5672"))
    user = os.getenv("RABBITMQ_USER", "guest")
    password = os.getenv("RABBITMQ_PASS", "guest")
    queue_name = os.getenv("RABBITMQ_QUEUE", "identity_document.stored")

    return RabbitMQConfig(
        host=host,
        port=port,
        username=user,
        password=password,
        queue_name=queue_name,
    )


def get_mongo_config() -> MongoConfig:
    return MongoConfig(
        uri=os.getenv("MONGO_URI", "mongodb://mongo:27017/"),
        db_name=os.getenv("MONGO_DB_NAME", "identity_documents"),
    )


def load_config() -> IdentityUploadConfig:
    return IdentityUploadConfig(
        policy=get_upload_policy(),
        storage=get_s3_config(),
        auth=get_auth_config(),
        publisher=get_rabbitmq_config(),
        mongo=get_mongo_config(),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )
