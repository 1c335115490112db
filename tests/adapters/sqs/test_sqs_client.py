from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import boto3
import pytest
from botocore.stub import ANY, Stubber

from cargolink.adapters.sqs import SqsEventBus, SqsMessageQueue, build_sqs_client
from cargolink.config import QueueConfig
from cargolink.domain.ports import QueueError
from tests.helpers.queues import FakeMessageQueue

if TYPE_CHECKING:
    from collections.abc import Iterator

    from botocore.client import BaseClient

QUEUE_URL = "https://sqs.us-east-1.amazonaws.com/123456789012/ingest"


@pytest.fixture
def sqs_client(monkeypatch: pytest.MonkeyPatch) -> BaseClient:
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    return boto3.client("sqs", region_name="us-east-1")


@pytest.fixture
def stubber(sqs_client: BaseClient) -> Iterator[Stubber]:
    with Stubber(sqs_client) as stub:
        yield stub
        stub.assert_no_pending_responses()


def test_receive_maps_messages_and_receive_count(
    sqs_client: BaseClient, stubber: Stubber
) -> None:
    stubber.add_response(
        "receive_message",
        {
            "Messages": [
                {
                    "MessageId": "m-1",
                    "ReceiptHandle": "r-1",
                    "Body": "{}",
                    "Attributes": {"ApproximateReceiveCount": "3"},
                },
                {"MessageId": "m-2", "ReceiptHandle": "r-2", "Body": "[]"},
            ]
        },
        {
            "QueueUrl": QUEUE_URL,
            "MaxNumberOfMessages": 10,
            "WaitTimeSeconds": 10,
            "AttributeNames": ["ApproximateReceiveCount"],
        },
    )

    messages = SqsMessageQueue(QUEUE_URL, sqs_client).receive(max_messages=10, wait_seconds=10)

    assert [(m.message_id, m.receipt_handle, m.receive_count) for m in messages] == [
        ("m-1", "r-1", 3),
        ("m-2", "r-2", 0),
    ]


def test_receive_empty_queue(sqs_client: BaseClient, stubber: Stubber) -> None:
    stubber.add_response("receive_message", {})

    assert SqsMessageQueue(QUEUE_URL, sqs_client).receive(max_messages=1, wait_seconds=0) == []


def test_delete_and_change_visibility(sqs_client: BaseClient, stubber: Stubber) -> None:
    stubber.add_response("delete_message", {}, {"QueueUrl": QUEUE_URL, "ReceiptHandle": "r-1"})
    stubber.add_response(
        "change_message_visibility",
        {},
        {"QueueUrl": QUEUE_URL, "ReceiptHandle": "r-2", "VisibilityTimeout": 60},
    )
    queue = SqsMessageQueue(QUEUE_URL, sqs_client)

    queue.delete("r-1")
    queue.change_visibility("r-2", 60)


def test_send_returns_message_id(sqs_client: BaseClient, stubber: Stubber) -> None:
    stubber.add_response(
        "send_message",
        {"MessageId": "sqs-1", "MD5OfMessageBody": "d41d8cd98f00b204e9800998ecf8427e"},
        {"QueueUrl": QUEUE_URL, "MessageBody": ANY},
    )

    assert SqsMessageQueue(QUEUE_URL, sqs_client).send("payload") == "sqs-1"


def test_client_errors_become_queue_errors(sqs_client: BaseClient, stubber: Stubber) -> None:
    stubber.add_client_error(
        "receive_message", service_error_code="AWS.SimpleQueueService.NonExistentQueue"
    )
    stubber.add_client_error("send_message", service_error_code="InvalidMessageContents")

    queue = SqsMessageQueue(QUEUE_URL, sqs_client)
    with pytest.raises(QueueError, match="receive"):
        queue.receive(max_messages=1, wait_seconds=0)
    with pytest.raises(QueueError, match="send"):
        queue.send("payload")


def test_event_bus_publishes_envelope() -> None:
    queue = FakeMessageQueue()
    bus = SqsEventBus(queue, clock=lambda: datetime(2025, 1, 1, tzinfo=UTC))

    message_id = bus.publish_ingest("tenant-a", "key-1", '{"booking": "BK-1"}')

    envelope = json.loads(queue.sent[0])
    assert envelope["messageId"] == message_id
    assert envelope["tenantId"] == "tenant-a"
    assert envelope["idempotencyKey"] == "key-1"
    assert envelope["rawPayload"] == '{"booking": "BK-1"}'
    assert envelope["timestamp"].startswith("2025-01-01T00:00:00")


def test_event_bus_rejects_blank_tenant() -> None:
    queue = FakeMessageQueue()

    with pytest.raises(ValueError, match="Invalid message format"):
        SqsEventBus(queue).publish_ingest("", None, "{}")

    assert queue.sent == []


def test_event_bus_propagates_queue_errors() -> None:
    with pytest.raises(QueueError):
        SqsEventBus(FakeMessageQueue(failing={"send"})).publish_ingest("tenant-a", None, "{}")


def test_build_sqs_client_derives_localstack_endpoint(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    config = QueueConfig(
        ingest_queue_url="http://localhost:4566/000000000000/ingest",
        dead_letter_queue_url="http://localhost:4566/000000000000/ingest-dlq",
    )

    client = build_sqs_client(config)

    assert client.meta.endpoint_url == "http://localhost:4566"
    assert client.meta.region_name == "us-east-1"


def test_build_sqs_client_prefers_explicit_endpoint(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    config = QueueConfig(
        ingest_queue_url=QUEUE_URL,
        dead_letter_queue_url=QUEUE_URL + "-dlq",
        region="eu-west-1",
        endpoint_url="http://sqs.internal:9324",
    )

    client = build_sqs_client(config)

    assert client.meta.endpoint_url == "http://sqs.internal:9324"
    assert client.meta.region_name == "eu-west-1"
