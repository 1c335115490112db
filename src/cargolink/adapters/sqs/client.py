"""boto3-backed message queue and event bus."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING, Any, cast

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from pydantic import ValidationError

from cargolink.domain.ports.messaging import QueueError, ReceivedMessage

from .schema import IngestQueueMessage

if TYPE_CHECKING:
    from collections.abc import Callable

    from botocore.client import BaseClient

    from cargolink.config.queue import QueueConfig
    from cargolink.domain.ports.messaging import MessageQueue

log = getLogger(__name__)

_RECEIVE_COUNT_ATTRIBUTE = "ApproximateReceiveCount"


def build_sqs_client(config: QueueConfig) -> BaseClient:
    """Create an SQS client; local queue URLs resolve to a LocalStack endpoint."""

    endpoint = config.effective_endpoint
    if endpoint is not None:
        log.info("Using SQS endpoint %s", endpoint)
    return boto3.client("sqs", region_name=config.region, endpoint_url=endpoint)


def _receive_count(message: dict[str, Any]) -> int:
    attributes = cast("dict[str, str]", message.get("Attributes") or {})
    try:
        return int(attributes.get(_RECEIVE_COUNT_ATTRIBUTE, "0"))
    except ValueError:
        return 0


class SqsMessageQueue:
    """A single SQS queue addressed by URL."""

    def __init__(self, queue_url: str, client: BaseClient) -> None:
        self.queue_url = queue_url
        self._client: Any = client

    def receive(self, *, max_messages: int, wait_seconds: int) -> list[ReceivedMessage]:
        try:
            response = self._client.receive_message(
                QueueUrl=self.queue_url,
                MaxNumberOfMessages=max_messages,
                WaitTimeSeconds=wait_seconds,
                AttributeNames=[_RECEIVE_COUNT_ATTRIBUTE],
            )
        except (BotoCoreError, ClientError) as exc:
            raise QueueError(f"Failed to receive from {self.queue_url}: {exc}") from exc

        messages = cast("list[dict[str, Any]]", response.get("Messages") or [])
        return [
            ReceivedMessage(
                message_id=message["MessageId"],
                receipt_handle=message["ReceiptHandle"],
                body=message.get("Body", ""),
                receive_count=_receive_count(message),
            )
            for message in messages
        ]

    def delete(self, receipt_handle: str) -> None:
        try:
            self._client.delete_message(QueueUrl=self.queue_url, ReceiptHandle=receipt_handle)
        except (BotoCoreError, ClientError) as exc:
            raise QueueError(f"Failed to delete message from {self.queue_url}: {exc}") from exc

    def change_visibility(self, receipt_handle: str, timeout_seconds: int) -> None:
        try:
            self._client.change_message_visibility(
                QueueUrl=self.queue_url,
                ReceiptHandle=receipt_handle,
                VisibilityTimeout=timeout_seconds,
            )
        except (BotoCoreError, ClientError) as exc:
            raise QueueError(
                f"Failed to change message visibility on {self.queue_url}: {exc}"
            ) from exc

    def send(self, body: str) -> str:
        try:
            response = self._client.send_message(QueueUrl=self.queue_url, MessageBody=body)
        except (BotoCoreError, ClientError) as exc:
            raise QueueError(f"Failed to send message to {self.queue_url}: {exc}") from exc
        return cast("str", response["MessageId"])


class SqsEventBus:
    """Publishes ingest envelopes onto the ingest queue."""

    def __init__(
        self,
        queue: MessageQueue,
        *,
        clock: Callable[[], datetime] = lambda: datetime.now(UTC),
    ) -> None:
        self._queue = queue
        self._clock = clock

    def publish_ingest(self, tenant_id: str, idempotency_key: str | None, raw_payload: str) -> str:
        try:
            envelope = IngestQueueMessage(
                message_id=str(uuid.uuid4()),
                tenant_id=tenant_id,
                idempotency_key=idempotency_key,
                raw_payload=raw_payload,
                timestamp=self._clock(),
            )
            body = envelope.to_json()
        except ValidationError as exc:
            log.error(f"Failed to serialize message for tenantId={tenant_id}")  # noqa: TRY400
            raise ValueError("Invalid message format") from exc

        try:
            sqs_message_id = self._queue.send(body)
        except QueueError:
            log.exception(f"SQS error for tenantId={tenant_id}")
            raise
        log.info(f"Message sent to SQS: messageId={sqs_message_id}, tenantId={tenant_id}")
        return envelope.message_id


if TYPE_CHECKING:
    from cargolink.domain.ports.messaging import EventBus

    _queue_check: MessageQueue = SqsMessageQueue("", cast("BaseClient", object()))
    _bus_check: EventBus = SqsEventBus(_queue_check)
