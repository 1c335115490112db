"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from decimal import Decimal
from enum import StrEnum
from typing import Final

CONFIDENCE_QUANTUM: Final[Decimal] = Decimal("0.01")


class LinkingReason(StrEnum):
    """Why an order was linked to a container."""

    BOOKING_MATCH = "booking_match"
    MANUAL = "manual"
    AI_INFERENCE = "ai_inference"
    TEMPORAL_CORRELATION = "temporal_correlation"
    SYSTEM_MIGRATION = "system_migration"

    @property
    def confidence(self) -> Decimal:
        return confidence_for(self)


class LinkUpdatePolicy(StrEnum):
    """How a repeated link for an existing pair treats the stored values."""

    LAST_WRITE_WINS = "last_write_wins"
    HIGHEST_CONFIDENCE = "highest_confidence"


def confidence_for(reason: LinkingReason) -> Decimal:
    """Fixed confidence score attached to each linking reason."""

    match reason:
        case LinkingReason.BOOKING_MATCH:
            return Decimal("1.00")
        case LinkingReason.MANUAL:
            return Decimal("0.95")
        case LinkingReason.AI_INFERENCE:
            return Decimal("0.70")
        case LinkingReason.TEMPORAL_CORRELATION:
            return Decimal("0.60")
        case LinkingReason.SYSTEM_MIGRATION:
            return Decimal("0.35")


def normalize_confidence(value: Decimal | float | str) -> Decimal:
    """Quantise a confidence score to two places and check it lies in [0, 1]."""

    score = Decimal(str(value)).quantize(CONFIDENCE_QUANTUM)
    if not Decimal("0.00") <= score <= Decimal("1.00"):
        raise ValueError(f"Confidence score must be between 0.00 and 1.00, got {score}")
    return score
