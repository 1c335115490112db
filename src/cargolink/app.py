"""Application orchestration entry points."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from cargolink.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyIngestUnitOfWork,
    is_started,
    startup,
)
from cargolink.adapters.sqs import (
    JsonIngestCodec,
    SqsEventBus,
    SqsMessageQueue,
    build_sqs_client,
    parse_raw_payload,
)
from cargolink.config import (
    ConsumerConfig,
    IngestConfig,
    QueueConfig,
    get_consumer_config,
    get_ingest_config,
    get_queue_config,
)
from cargolink.domain.consumer import IngestConsumer, RetryMode, RetryPolicy
from cargolink.domain.ingestion import IngestOutcome, process_ingest_message
from cargolink.domain.model import (
    ContainerRef,
    LinkUpdatePolicy,
    PurchaseRef,
)

if TYPE_CHECKING:
    import threading

    from botocore.client import BaseClient

    from cargolink.domain.ingestion import IngestMessage
    from cargolink.domain.model import Container, Invoice, Order, OrderContainerLink
    from cargolink.domain.ports import EventBus, IngestUnitOfWorkFactory

log = getLogger(__name__)


def default_unit_of_work_factory(
    *,
    config: IngestConfig | None = None,
    link_policy: LinkUpdatePolicy = LinkUpdatePolicy.LAST_WRITE_WINS,
) -> IngestUnitOfWorkFactory:
    """Start the SQLAlchemy adapter if needed and return a unit-of-work factory."""

    if not is_started():
        startup()
    effective_config = config or get_ingest_config()

    def factory() -> SqlAlchemyIngestUnitOfWork:
        return SqlAlchemyIngestUnitOfWork(config=effective_config, link_policy=link_policy)

    return factory


def _resolve(unit_of_work_factory: IngestUnitOfWorkFactory | None) -> IngestUnitOfWorkFactory:
    return unit_of_work_factory or default_unit_of_work_factory()


def list_orders(
    tenant_id: str, *, unit_of_work_factory: IngestUnitOfWorkFactory | None = None
) -> list[Order]:
    with _resolve(unit_of_work_factory)() as uow:
        return uow.repositories.orders.find_all(tenant_id)


def list_containers(
    tenant_id: str, *, unit_of_work_factory: IngestUnitOfWorkFactory | None = None
) -> list[Container]:
    with _resolve(unit_of_work_factory)() as uow:
        return uow.repositories.containers.find_all(tenant_id)


def list_links(
    tenant_id: str, *, unit_of_work_factory: IngestUnitOfWorkFactory | None = None
) -> list[OrderContainerLink]:
    with _resolve(unit_of_work_factory)() as uow:
        return uow.repositories.links.all_links(tenant_id)


def containers_for_purchase(
    tenant_id: str,
    purchase_ref: str,
    *,
    unit_of_work_factory: IngestUnitOfWorkFactory | None = None,
) -> list[Container]:
    reference = PurchaseRef(purchase_ref)
    with _resolve(unit_of_work_factory)() as uow:
        return uow.repositories.links.containers_for_purchase_ref(tenant_id, reference)


def orders_for_container(
    tenant_id: str,
    container_ref: str,
    *,
    unit_of_work_factory: IngestUnitOfWorkFactory | None = None,
) -> list[Order]:
    reference = ContainerRef(container_ref)
    with _resolve(unit_of_work_factory)() as uow:
        return uow.repositories.links.orders_for_container_ref(tenant_id, reference)


def invoices_for_purchase(
    tenant_id: str,
    purchase_ref: str,
    *,
    unit_of_work_factory: IngestUnitOfWorkFactory | None = None,
) -> list[Invoice]:
    reference = PurchaseRef(purchase_ref)
    with _resolve(unit_of_work_factory)() as uow:
        return uow.repositories.invoices.find_by_purchase_ref(tenant_id, reference)


def ingest_message(
    message: IngestMessage, *, unit_of_work_factory: IngestUnitOfWorkFactory | None = None
) -> IngestOutcome:
    return process_ingest_message(message, _resolve(unit_of_work_factory))


def ingest_payload(
    tenant_id: str,
    raw_payload: str,
    *,
    unit_of_work_factory: IngestUnitOfWorkFactory | None = None,
) -> IngestOutcome:
    """Parse and process a raw notification synchronously, bypassing the queue."""

    message = parse_raw_payload(tenant_id, raw_payload)
    return ingest_message(message, unit_of_work_factory=unit_of_work_factory)


def build_event_bus(
    *, queue_config: QueueConfig | None = None, client: BaseClient | None = None
) -> EventBus:
    config = queue_config or get_queue_config()
    sqs = client or build_sqs_client(config)
    return SqsEventBus(SqsMessageQueue(config.ingest_queue_url, sqs))


def publish_payload(
    tenant_id: str,
    raw_payload: str,
    *,
    idempotency_key: str | None = None,
    event_bus: EventBus | None = None,
) -> str:
    bus = event_bus or build_event_bus()
    return bus.publish_ingest(tenant_id, idempotency_key, raw_payload)


def build_retry_policy(config: ConsumerConfig) -> RetryPolicy:
    return RetryPolicy(
        max_retries=config.max_retries,
        base_delay_seconds=config.base_retry_delay_seconds,
        max_delay_seconds=config.max_retry_delay_seconds,
        mode=RetryMode(config.retry_mode),
    )


def build_consumer(
    *,
    queue_config: QueueConfig | None = None,
    consumer_config: ConsumerConfig | None = None,
    unit_of_work_factory: IngestUnitOfWorkFactory | None = None,
    client: BaseClient | None = None,
) -> IngestConsumer:
    """Wire the SQS queues, JSON codec, and linking engine into a consumer."""

    queues = queue_config or get_queue_config()
    settings = consumer_config or get_consumer_config()
    sqs = client or build_sqs_client(queues)
    uow_factory = _resolve(unit_of_work_factory)

    def process(message: IngestMessage) -> IngestOutcome:
        return process_ingest_message(message, uow_factory)

    return IngestConsumer(
        SqsMessageQueue(queues.ingest_queue_url, sqs),
        SqsMessageQueue(queues.dead_letter_queue_url, sqs),
        JsonIngestCodec(),
        process,
        retry_policy=build_retry_policy(settings),
        max_messages=settings.max_messages,
        wait_seconds=settings.wait_seconds,
        poll_delay_seconds=settings.poll_delay_seconds,
    )


def run_consumer(
    *,
    stop_event: threading.Event | None = None,
    max_cycles: int | None = None,
    consumer: IngestConsumer | None = None,
) -> int:
    effective = consumer or build_consumer()
    log.info(
        "Starting ingest consumer: max_messages=%s, wait=%ss, retry_mode=%s",
        effective.max_messages,
        effective.wait_seconds,
        effective.retry_policy.mode,
    )
    return effective.run(stop_event, max_cycles=max_cycles)
