"""Exact conversion of user supplied amounts and index ranges."""

from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, localcontext
from enum import Enum
from typing import Any

from .errors import InvalidAmount, InvalidRange, ValidationError, ZeroAmount

_DECIMAL_NUMERAL = re.compile(r"^(?:\d+(?:\.\d*)?|\.\d+)$")
_INDEX = re.compile(r"^\d+$")

MIN_PERIOD = 1
MAX_PERIOD = 120


class RangeKind(str, Enum):
    BLOCKS = "block"
    ACCRUALS = "accrual"


@dataclass(frozen=True)
class Range:
    """Inclusive range of block numbers or accrual indices."""

    kind: RangeKind
    first: int
    last: int

    def __post_init__(self) -> None:
        if self.first < 0 or self.last < self.first:
            raise InvalidRange(
                f"Invalid {self.kind.value} range {self.first}-{self.last}"
            )


def parse_units(raw: Any, decimals: int) -> int:
    """Return ``raw`` expressed in base units of a currency with ``decimals``.

    ``raw`` is parsed as a decimal numeral and scaled with exact decimal
    arithmetic, so amounts with 18 or more fractional digits never pick up
    rounding error.
    """

    if decimals < 0:
        raise ValueError("decimals must not be negative")
    text = str(raw).strip() if raw is not None else ""
    if not _DECIMAL_NUMERAL.match(text):
        raise InvalidAmount(f"Amount must be a positive number, got {raw!r}")
    try:
        value = Decimal(text)
    except InvalidOperation as exc:  # pragma: no cover - guarded by the regex
        raise InvalidAmount(f"Amount must be a positive number, got {raw!r}") from exc

    with localcontext() as ctx:
        ctx.prec = max(28, len(value.as_tuple().digits) + decimals + 1)
        scaled = value.scaleb(decimals)
        if scaled != scaled.to_integral_value():
            raise InvalidAmount(
                f"Amount {text} has more than {decimals} decimal places"
            )
        base_units = int(scaled)

    if base_units == 0:
        raise ZeroAmount("Amount must be greater than zero")
    return base_units


def format_units(value: int, decimals: int) -> str:
    """Render base units as a plain decimal string without trailing zeros."""

    sign = "-" if value < 0 else ""
    whole, fraction = divmod(abs(int(value)), 10**decimals)
    if decimals == 0 or fraction == 0:
        return f"{sign}{whole}"
    digits = str(fraction).rjust(decimals, "0").rstrip("0")
    return f"{sign}{whole}.{digits}"


def _parse_bound(raw: str, kind: RangeKind, position: str) -> int:
    text = raw.strip()
    if not _INDEX.match(text):
        raise InvalidRange(
            f"{position} {kind.value} must be a non-negative integer, got {raw!r}"
        )
    return int(text)


def parse_range(raw: str, kind: RangeKind) -> Range:
    """Parse ``"N"`` or ``"first-last"`` into a :class:`Range`."""

    if raw is None or not str(raw).strip():
        raise InvalidRange(f"A {kind.value} range is required")
    parts = str(raw).split("-")
    if len(parts) > 2:
        raise InvalidRange(f"Malformed {kind.value} range {raw!r}")
    first = _parse_bound(parts[0], kind, "First")
    last = _parse_bound(parts[1], kind, "Last") if len(parts) == 2 else first
    if last < first:
        raise InvalidRange(
            f"Last {kind.value} {last} is lower than first {kind.value} {first}"
        )
    return Range(kind=kind, first=first, last=last)


def select_range(blocks: str | None = None, accruals: str | None = None) -> Range:
    """Return the single range selected on the command line."""

    if blocks and accruals:
        raise InvalidRange("Block and accrual ranges are mutually exclusive")
    if blocks:
        return parse_range(blocks, RangeKind.BLOCKS)
    if accruals:
        return parse_range(accruals, RangeKind.ACCRUALS)
    raise InvalidRange("Either an accrual range or a block range is required")


def validate_period(period: Any) -> int:
    try:
        value = int(str(period).strip())
    except (TypeError, ValueError) as exc:
        raise ValidationError(
            f"Period must be a number from {MIN_PERIOD} to {MAX_PERIOD}."
        ) from exc
    if value < MIN_PERIOD or value > MAX_PERIOD:
        raise ValidationError(f"Period must be a number from {MIN_PERIOD} to {MAX_PERIOD}.")
    return value
