"""Polling consumer that drives queued ingest messages through the linking engine."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING

from cargolink.domain.consumer.retry import MessageState, RetryMode, RetryPolicy
from cargolink.domain.model import utc_now
from cargolink.domain.ports.messaging import QueueError

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    from cargolink.domain.ingestion import IngestMessage, IngestOutcome
    from cargolink.domain.ports.messaging import IngestMessageCodec, MessageQueue, ReceivedMessage

log = logging.getLogger(__name__)

type MessageProcessor = Callable[[IngestMessage], IngestOutcome]


def _transition(message_id: str, current: MessageState, target: MessageState) -> MessageState:
    if not current.can_transition_to(target):
        raise RuntimeError(f"Message {message_id} cannot move from {current} to {target}")
    log.debug("Message %s %s -> %s", message_id, current, target)
    return target


@dataclass(frozen=True, slots=True)
class MessageResult:
    message_id: str
    state: MessageState
    delivery_count: int
    error: str | None = None
    retry_delay_seconds: int | None = None
    outcome: IngestOutcome | None = None


@dataclass(frozen=True, slots=True)
class PollResult:
    """Per-message results of one poll cycle."""

    results: tuple[MessageResult, ...] = ()
    error: str | None = None

    def count(self, state: MessageState) -> int:
        return sum(1 for result in self.results if result.state is state)

    @property
    def received(self) -> int:
        return len(self.results)

    @property
    def persisted(self) -> int:
        return self.count(MessageState.PERSISTED)

    @property
    def retried(self) -> int:
        return self.count(MessageState.RETRY_SCHEDULED)

    @property
    def dead_lettered(self) -> int:
        return self.count(MessageState.DEAD_LETTERED)


class IngestConsumer:
    """Receive, process, and settle ingest messages one poll cycle at a time.

    A delivery is deleted only after the engine returns. Failures below the
    retry limit are handled according to the retry policy's mode; at the limit
    the original body is sent to the dead-letter queue and removed from the
    source queue.
    """

    def __init__(
        self,
        queue: MessageQueue,
        dead_letter_queue: MessageQueue,
        codec: IngestMessageCodec,
        process: MessageProcessor,
        *,
        retry_policy: RetryPolicy | None = None,
        max_messages: int = 10,
        wait_seconds: int = 10,
        poll_delay_seconds: float = 5,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._queue = queue
        self._dead_letter_queue = dead_letter_queue
        self._codec = codec
        self._process = process
        self.retry_policy = retry_policy or RetryPolicy()
        self.max_messages = max_messages
        self.wait_seconds = wait_seconds
        self.poll_delay_seconds = poll_delay_seconds
        self._clock = clock

    def run(
        self,
        stop_event: threading.Event | None = None,
        *,
        max_cycles: int | None = None,
    ) -> int:
        """Poll until ``stop_event`` is set or ``max_cycles`` cycles ran.

        Cycles never overlap: the delay starts after a cycle has finished.
        Returns the number of completed cycles.
        """

        stop = stop_event or threading.Event()
        cycles = 0
        log.info("Starting ingest consumer")
        while not stop.is_set():
            self.poll_once()
            cycles += 1
            if max_cycles is not None and cycles >= max_cycles:
                break
            stop.wait(self.poll_delay_seconds)
        log.info(f"Ingest consumer stopped after {cycles} poll cycles")
        return cycles

    def poll_once(self) -> PollResult:
        try:
            messages = self._queue.receive(
                max_messages=self.max_messages, wait_seconds=self.wait_seconds
            )
        except QueueError as exc:
            log.error("Error polling ingest queue: %s", exc)  # noqa: TRY400
            return PollResult(error=str(exc))

        if messages:
            log.debug("Received %d messages from ingest queue", len(messages))
        return PollResult(results=tuple(self.handle(message) for message in messages))

    def handle(self, message: ReceivedMessage) -> MessageResult:
        state = _transition(message.message_id, MessageState.RECEIVED, MessageState.PARSING)
        try:
            ingest_message = self._codec.decode(message.body)
            outcome = self._process(ingest_message)
        except Exception as exc:  # noqa: BLE001
            return self._handle_failure(message, state, exc)

        try:
            self._queue.delete(message.receipt_handle)
        except QueueError:
            log.exception(
                "Processed message %s but could not delete it; it will be redelivered",
                message.message_id,
            )
        log.info("Successfully processed message %s", message.message_id)
        return MessageResult(
            message_id=message.message_id,
            state=_transition(message.message_id, state, MessageState.PERSISTED),
            delivery_count=message.receive_count,
            outcome=outcome,
        )

    def _handle_failure(
        self, message: ReceivedMessage, state: MessageState, exc: Exception
    ) -> MessageResult:
        state = _transition(message.message_id, state, MessageState.FAILED)
        delivery_count = message.receive_count
        error = str(exc) or type(exc).__name__
        log.warning(
            "Error processing message %s (delivery %d): %s",
            message.message_id,
            delivery_count,
            error,
        )

        if self.retry_policy.should_dead_letter(delivery_count):
            return self._dead_letter(message, state, error)

        delay = self.retry_policy.backoff_delay(delivery_count)
        try:
            match self.retry_policy.mode:
                case RetryMode.VISIBILITY:
                    self._queue.change_visibility(message.receipt_handle, delay)
                    log.info(
                        "Message %s will be retried in %d seconds (delivery %d)",
                        message.message_id,
                        delay,
                        delivery_count,
                    )
                case RetryMode.DISCARD:
                    log.info(
                        "Message %s would be retried in %d seconds; discarding it instead",
                        message.message_id,
                        delay,
                    )
                    self._queue.delete(message.receipt_handle)
        except QueueError:
            log.exception("Could not schedule retry for message %s", message.message_id)

        return MessageResult(
            message_id=message.message_id,
            state=_transition(message.message_id, state, MessageState.RETRY_SCHEDULED),
            delivery_count=delivery_count,
            error=error,
            retry_delay_seconds=delay,
        )

    def _dead_letter(
        self, message: ReceivedMessage, state: MessageState, error: str
    ) -> MessageResult:
        record = self._codec.encode_dead_letter(message.body, error, self._clock())
        try:
            self._dead_letter_queue.send(record)
        except QueueError:
            log.exception(
                "Failed to send message %s to the dead-letter queue; leaving it queued",
                message.message_id,
            )
            return MessageResult(
                message_id=message.message_id,
                state=state,
                delivery_count=message.receive_count,
                error=error,
            )

        try:
            self._queue.delete(message.receipt_handle)
        except QueueError:
            log.exception("Dead-lettered message %s but could not delete it", message.message_id)
        log.warning(
            "Message %s sent to dead-letter queue after %d deliveries",
            message.message_id,
            message.receive_count,
        )
        return MessageResult(
            message_id=message.message_id,
            state=_transition(message.message_id, state, MessageState.DEAD_LETTERED),
            delivery_count=message.receive_count,
            error=error,
        )
