import pika
from pydantic import BaseModel

from src.identity_upload_service.domain import (
    IdentityDocumentEventPublisher,
    IdentityDocumentStoredEvent,
)


class RabbitMQConfig(BaseModel):
    """Configuration for RabbitMQ connection."""

    host: str
    port: int
    username: str
    password: str
    queue_name: str = "identity_document.stored"


class RabbitMQIdentityDocumentEventPublisher(IdentityDocumentEventPublisher):
    """RabbitMQ-backed publisher for IdentityDocumentStoredEvent."""

    def __init__(self, config: RabbitMQConfig) -> None:
        self._config = config

    def publish_identity_document_stored(self, event: IdentityDocumentStoredEvent) -> None:
        """Publish an IdentityDocumentStoredEvent to a durable queue."""
        credentials = pika.PlainCredentials(
            self._config.username,
            self._config.password,
        )
        parameters = pika.ConnectionParameters(
            host=self._config.host,
            port=self._config.port,
            credentials=credentials,
        )

        connection = pika.BlockingConnection(parameters)
        try:
            channel = connection.channel()

            channel.queue_declare(queue=self._config.queue_name, durable=True)

            channel.basic_publish(
                exchange="",
                routing_key=self._config.queue_name,
                body=event.model_dump_json().encode("utf-8"),
                properties=pika.BasicProperties(
                    content_type="application/json",
                    delivery_mode=pika.DeliveryMode.Persistent,
                ),
            )
        finally:
            connection.close()
