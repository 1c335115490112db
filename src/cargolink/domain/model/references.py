"""Validated business references (value objects).

References are what upstream systems use to talk about the same shipment:
bookings, purchase orders, invoices and ISO 6346 container numbers. Each is
validated on construction so malformed input never reaches persistence.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import ClassVar, Final

from cargolink.domain.errors import InvalidReferenceError

CONTAINER_REF_PATTERN: Final[re.Pattern[str]] = re.compile(r"^[A-Z]{4}[0-9]{6}[0-9]$")


@dataclass(frozen=True, slots=True)
class _Reference:
    value: str

    KIND: ClassVar[str] = "reference"

    def __post_init__(self) -> None:
        if not isinstance(self.value, str) or not self.value.strip():
            raise InvalidReferenceError(self.KIND, self.value, "must not be blank")

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class BookingRef(_Reference):
    KIND: ClassVar[str] = "booking reference"


@dataclass(frozen=True, slots=True)
class PurchaseRef(_Reference):
    KIND: ClassVar[str] = "purchase reference"


@dataclass(frozen=True, slots=True)
class InvoiceRef(_Reference):
    KIND: ClassVar[str] = "invoice reference"


@dataclass(frozen=True, slots=True)
class ContainerRef(_Reference):
    """Four owner/category letters, six serial digits and one check digit.

    Only the shape is enforced; the check digit is not recomputed.
    """

    KIND: ClassVar[str] = "container reference"

    def __post_init__(self) -> None:
        # zero-arg super() breaks on slotted dataclasses
        _Reference.__post_init__(self)
        if CONTAINER_REF_PATTERN.fullmatch(self.value) is None:
            raise InvalidReferenceError(
                self.KIND, self.value, "expected 4 letters followed by 7 digits"
            )

    @property
    def owner_code(self) -> str:
        return self.value[:4]

    @property
    def serial_number(self) -> str:
        return self.value[4:10]

    @property
    def check_digit(self) -> int:
        return int(self.value[10])
