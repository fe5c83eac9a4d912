"""Seat layout templates used to seed a new flight's inventory."""
from __future__ import annotations

import json
from dataclasses import dataclass
from decimal import Decimal
from itertools import cycle
from typing import Iterator, List, Sequence

from .models import SeatClass, SeatStatus


@dataclass(frozen=True)
class SeatClassSpec:
    """A contiguous block of seats sharing a class and a price."""

    seat_class: SeatClass
    count: int
    price: Decimal
    status_cycle: Sequence[SeatStatus] = (SeatStatus.AVAILABLE,)

    def __post_init__(self) -> None:
        if self.count <= 0:
            raise ValueError("seat count must be positive")
        if not Decimal(self.price).is_finite() or self.price < 0:
            raise ValueError("seat price must be a non-negative number")
        if not self.status_cycle:
            raise ValueError("status cycle must not be empty")


@dataclass(frozen=True)
class SeatRow:
    seat_number: int
    seat_class: SeatClass
    status: SeatStatus
    price: Decimal


@dataclass(frozen=True)
class SeatLayout:
    """Ordered seat class blocks; seats are numbered from 1 across blocks."""

    blocks: Sequence[SeatClassSpec]

    def __post_init__(self) -> None:
        if not self.blocks:
            raise ValueError("seat layout needs at least one block")

    @property
    def total_seats(self) -> int:
        return sum(block.count for block in self.blocks)

    def generate(self) -> Iterator[SeatRow]:
        number = 1
        for block in self.blocks:
            statuses = cycle(block.status_cycle)
            for _ in range(block.count):
                yield SeatRow(number, block.seat_class, next(statuses), block.price)
                number += 1

    @classmethod
    def from_json(cls, raw: str) -> "SeatLayout":
        """Parse ``[{"class": "Economy", "count": 12, "price": "100", "statuses": [...]}]``."""

        try:
            entries = json.loads(raw)
            blocks: List[SeatClassSpec] = []
            for entry in entries:
                statuses = entry.get("statuses") or [SeatStatus.AVAILABLE.value]
                blocks.append(
                    SeatClassSpec(
                        seat_class=SeatClass(entry["class"]),
                        count=int(entry["count"]),
                        price=Decimal(str(entry["price"])),
                        status_cycle=tuple(SeatStatus(status) for status in statuses),
                    )
                )
        except (ValueError, KeyError, TypeError, ArithmeticError) as exc:
            raise ValueError(f"invalid seat layout: {exc}") from exc
        return cls(blocks=tuple(blocks))


_ALTERNATING = (SeatStatus.AVAILABLE, SeatStatus.BOOKED)

DEFAULT_SEAT_LAYOUT = SeatLayout(
    blocks=(
        SeatClassSpec(SeatClass.ECONOMY, 12, Decimal("100"), _ALTERNATING),
        SeatClassSpec(SeatClass.PREMIUM, 12, Decimal("450"), _ALTERNATING),
    )
)


__all__ = ["DEFAULT_SEAT_LAYOUT", "SeatClassSpec", "SeatLayout", "SeatRow"]
