#!/usr/bin/env python3

# ruff: noqa: T201

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from cargolink.app import (
    containers_for_purchase,
    ingest_payload,
    list_containers,
    list_links,
    list_orders,
    orders_for_container,
    publish_payload,
    run_consumer,
)
from cargolink.config import configure_logging

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType


def _add_payload_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("tenant", help="Tenant identifier owning the payload")
    source = parser.add_mutually_exclusive_group()
    source.add_argument("--payload", type=str, help="Raw JSON notification body")
    source.add_argument(
        "--file",
        type=str,
        help="Path to a JSON notification body ('-' reads standard input)",
    )


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Ingest logistics notifications and link cargo")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    commands = parser.add_subparsers(dest="command", required=True)

    consume = commands.add_parser("consume", help="Poll the ingest queue and process messages")
    consume.add_argument(
        "--max-cycles",
        type=int,
        help="Stop after this many poll cycles (default: run until interrupted)",
    )

    publish = commands.add_parser("publish", help="Publish a notification to the ingest queue")
    _add_payload_arguments(publish)
    publish.add_argument("--idempotency-key", type=str, help="Optional idempotency key")

    ingest = commands.add_parser("ingest", help="Process a notification without the queue")
    _add_payload_arguments(ingest)

    orders = commands.add_parser("orders", help="List purchase orders for a tenant")
    orders.add_argument("tenant")
    orders.add_argument("--container", type=str, help="Only orders linked to this container")

    containers = commands.add_parser("containers", help="List containers for a tenant")
    containers.add_argument("tenant")
    containers.add_argument("--purchase", type=str, help="Only containers linked to this order")

    links = commands.add_parser("links", help="List order-container links for a tenant")
    links.add_argument("tenant")

    return parser.parse_args(list(argv))


def _read_payload(args: argparse.Namespace) -> str:
    if args.payload is not None:
        return args.payload
    if args.file == "-":
        return sys.stdin.read()
    if args.file:
        path = Path(args.file)
        if not path.is_file():
            raise ValueError(f"Payload file not found: {args.file}")
        return path.read_text(encoding="utf-8")
    raise ValueError("Either --payload or --file is required")


def _validate(args: argparse.Namespace) -> None:
    if args.command == "consume" and args.max_cycles is not None and args.max_cycles < 1:
        raise ValueError("Max cycles must be positive")
    tenant = getattr(args, "tenant", None)
    if tenant is not None and not tenant.strip():
        raise ValueError("Tenant must not be blank")


def _run(args: argparse.Namespace, payload: str | None) -> None:
    match args.command:
        case "consume":
            cycles = run_consumer(max_cycles=args.max_cycles)
            print(f"Completed {cycles} poll cycle(s)")
        case "publish":
            assert payload is not None
            message_id = publish_payload(
                args.tenant, payload, idempotency_key=args.idempotency_key
            )
            print(f"Published message {message_id}")
        case "ingest":
            assert payload is not None
            outcome = ingest_payload(args.tenant, payload)
            print(
                f"Upserted {outcome.orders_upserted} orders, "
                f"{outcome.containers_upserted} containers, "
                f"{outcome.invoices_upserted} invoices; "
                f"wrote {outcome.links_written} links"
            )
        case "orders":
            found = (
                orders_for_container(args.tenant, args.container)
                if args.container
                else list_orders(args.tenant)
            )
            for order in found:
                print(f"{order.purchase_ref}\t{order.booking_ref or '-'}")
        case "containers":
            found = (
                containers_for_purchase(args.tenant, args.purchase)
                if args.purchase
                else list_containers(args.tenant)
            )
            for container in found:
                print(f"{container.container_ref}\t{container.booking_ref or '-'}")
        case "links":
            for link in list_links(args.tenant):
                print(
                    f"{link.order_id}\t{link.container_id}\t"
                    f"{link.linking_reason}\t{link.confidence_score}"
                )
        case _:
            raise ValueError(f"Unknown command: {args.command}")


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    parsed_args: argparse.Namespace
    payload: str | None = None
    try:
        parsed_args = _parse_args(argv if argv is not None else sys.argv[1:])
        _validate(parsed_args)
        if parsed_args.command in {"publish", "ingest"}:
            payload = _read_payload(parsed_args)
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(2)

    configure_logging(level=logging.DEBUG if parsed_args.verbose else logging.INFO)

    try:
        _run(parsed_args, payload)

    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(2)
    except Exception as e:  # noqa: BLE001
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    print("\nClosed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
