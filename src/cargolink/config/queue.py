"""Queue and consumer configuration values."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Final, Literal, cast

from .env import int_env_var, optional_env_var, require_env_vars
from .errors import ConfigurationError

DEFAULT_AWS_REGION: Final[str] = "us-east-1"
DEFAULT_LOCALSTACK_ENDPOINT: Final[str] = "http://localhost:4566"

MAX_RETRIES = 3
POLL_DELAY_SECONDS = 5
MAX_MESSAGES_PER_POLL = 10
LONG_POLL_WAIT_SECONDS = 10
BASE_RETRY_DELAY_SECONDS = 30
MAX_RETRY_DELAY_SECONDS = 900

UPSERT_CHUNK_SIZE = 100
LINK_CHUNK_SIZE = 50

type RetryModeName = Literal["visibility", "discard"]

_ENDPOINT_PATTERN = re.compile(r"(https?://[^/]+)")


@dataclass(frozen=True, slots=True)
class QueueConfig:
    """Where the ingest queue and its dead-letter queue live."""

    ingest_queue_url: str
    dead_letter_queue_url: str
    region: str = DEFAULT_AWS_REGION
    endpoint_url: str | None = None

    @property
    def effective_endpoint(self) -> str | None:
        """Explicit endpoint, or the LocalStack host derived from a local queue URL."""

        if self.endpoint_url:
            return self.endpoint_url
        if "localhost" in self.ingest_queue_url:
            match = _ENDPOINT_PATTERN.match(self.ingest_queue_url)
            return match.group(1) if match else DEFAULT_LOCALSTACK_ENDPOINT
        return None


@dataclass(frozen=True, slots=True)
class ConsumerConfig:
    max_retries: int = MAX_RETRIES
    poll_delay_seconds: int = POLL_DELAY_SECONDS
    max_messages: int = MAX_MESSAGES_PER_POLL
    wait_seconds: int = LONG_POLL_WAIT_SECONDS
    base_retry_delay_seconds: int = BASE_RETRY_DELAY_SECONDS
    max_retry_delay_seconds: int = MAX_RETRY_DELAY_SECONDS
    retry_mode: RetryModeName = "visibility"

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ConfigurationError("max_retries must be non-negative")
        if not 1 <= self.max_messages <= 10:
            raise ConfigurationError("max_messages must be between 1 and 10")
        if not 0 <= self.wait_seconds <= 20:
            raise ConfigurationError("wait_seconds must be between 0 and 20")
        if self.retry_mode not in ("visibility", "discard"):
            raise ConfigurationError(f"Unknown retry mode: {self.retry_mode}")


@dataclass(frozen=True, slots=True)
class IngestConfig:
    upsert_chunk_size: int = UPSERT_CHUNK_SIZE
    link_chunk_size: int = LINK_CHUNK_SIZE


def get_queue_config() -> QueueConfig:
    values = require_env_vars(("SQS_INGEST_QUEUE_URL", "SQS_INGEST_DLQ_URL"))
    return QueueConfig(
        ingest_queue_url=values["SQS_INGEST_QUEUE_URL"],
        dead_letter_queue_url=values["SQS_INGEST_DLQ_URL"],
        region=optional_env_var("AWS_REGION") or DEFAULT_AWS_REGION,
        endpoint_url=optional_env_var("SQS_ENDPOINT"),
    )


def get_consumer_config() -> ConsumerConfig:
    retry_mode = (optional_env_var("CARGOLINK_RETRY_MODE") or "visibility").lower()
    return ConsumerConfig(
        max_retries=int_env_var("CARGOLINK_MAX_RETRIES", MAX_RETRIES),
        poll_delay_seconds=int_env_var("CARGOLINK_POLL_DELAY_SECONDS", POLL_DELAY_SECONDS),
        max_messages=int_env_var("CARGOLINK_MAX_MESSAGES", MAX_MESSAGES_PER_POLL),
        wait_seconds=int_env_var("CARGOLINK_WAIT_SECONDS", LONG_POLL_WAIT_SECONDS),
        base_retry_delay_seconds=int_env_var(
            "CARGOLINK_BASE_RETRY_DELAY_SECONDS", BASE_RETRY_DELAY_SECONDS
        ),
        max_retry_delay_seconds=int_env_var(
            "CARGOLINK_MAX_RETRY_DELAY_SECONDS", MAX_RETRY_DELAY_SECONDS
        ),
        retry_mode=cast("RetryModeName", retry_mode),
    )


def get_ingest_config() -> IngestConfig:
    return IngestConfig(
        upsert_chunk_size=int_env_var("CARGOLINK_UPSERT_CHUNK_SIZE", UPSERT_CHUNK_SIZE),
        link_chunk_size=int_env_var("CARGOLINK_LINK_CHUNK_SIZE", LINK_CHUNK_SIZE),
    )
