import logging

from pymongo import MongoClient

from src.identity_upload_service.app import create_app
from src.identity_upload_service.auth import HttpSessionProvider
from src.identity_upload_service.config import load_config
from src.identity_upload_service.diagnostics import LoggingDiagnosticSink
from src.identity_upload_service.domain import SystemClock
from src.identity_upload_service.orchestrator import IdentityDocumentUploader
from src.identity_upload_service.rabbitmq_publisher import RabbitMQIdentityDocumentEventPublisher
from src.identity_upload_service.storage import S3StorageGateway, create_s3_client
from src.shared.documents_repository import MongoIdentityDocumentsRepository


config = load_config()

logging.basicConfig(
    level=config.log_level,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)

_gateway = S3StorageGateway(
    create_s3_client(config.storage),
    bucket=config.storage.bucket,
    cache_control=config.storage.cache_control,
)
_uploader = IdentityDocumentUploader(
    gateway=_gateway,
    clock=SystemClock(),
    diagnostics=LoggingDiagnosticSink(),
    policy=config.policy,
)
_repo = MongoIdentityDocumentsRepository(MongoClient(config.mongo.uri), db_name=config.mongo.db_name)
_publisher = RabbitMQIdentityDocumentEventPublisher(config.publisher)

app = create_app(
    uploader=_uploader,
    repository=_repo,
    publisher=_publisher,
    session_provider_factory=lambda token: HttpSessionProvider(config.auth, token),
    bucket=config.storage.bucket,
)
