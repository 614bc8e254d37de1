"""Gas policy resolution for on-chain steps."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, localcontext
from typing import Any, Dict

from .errors import InvalidGasPolicy, InvalidTimeout

logger = logging.getLogger(__name__)

DEFAULT_GAS_PRICE_GWEI = 12
DEFAULT_TIMEOUT_SECONDS = 60

_DIGITS = re.compile(r"[0-9]+")

UNIT_EXPONENTS: Dict[str, int] = {
    "wei": 0,
    "kwei": 3,
    "mwei": 6,
    "gwei": 9,
    "szabo": 12,
    "finney": 15,
    "ether": 18,
}


@dataclass(frozen=True)
class GasOptions:
    """Gas limit and price applied to every step of one workflow."""

    gas_limit: int
    gas_price: int

    def to_tx_fields(self) -> dict[str, str]:
        return {"gas": hex(self.gas_limit), "gasPrice": hex(self.gas_price)}


def _strict_int(raw: Any) -> int | None:
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw
    if isinstance(raw, str) and _DIGITS.fullmatch(raw.strip()):
        return int(raw.strip())
    return None


def to_wei(value: Any, unit: str = "gwei") -> int:
    """Convert ``value`` expressed in ``unit`` into an integer amount of wei."""

    exponent = UNIT_EXPONENTS.get(unit.lower())
    if exponent is None:
        raise InvalidGasPolicy(f"Unknown gas price unit: {unit}")
    if isinstance(value, bool) or isinstance(value, float):
        # Floats are rejected outright; callers pass strings or ints.
        raise InvalidGasPolicy(f"Gas price must be given as an integer or decimal string, got {value!r}")
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation as exc:
        raise InvalidGasPolicy(f"Gas price must be a number higher than 0, got {value!r}") from exc
    if not amount.is_finite():
        raise InvalidGasPolicy(f"Gas price must be a number higher than 0, got {value!r}")
    with localcontext() as ctx:
        ctx.prec = max(28, len(amount.as_tuple().digits) + exponent + 1)
        scaled = amount.scaleb(exponent)
        if scaled != scaled.to_integral_value():
            raise InvalidGasPolicy(f"Gas price {value} {unit} is not a whole number of wei")
        return int(scaled)


def resolve_gas_options(
    gas_limit: Any,
    gas_price: Any = DEFAULT_GAS_PRICE_GWEI,
    *,
    unit: str = "gwei",
) -> GasOptions:
    """Validate the user supplied gas policy and return it in wei."""

    limit = _strict_int(gas_limit)
    if limit is None or limit <= 0:
        raise InvalidGasPolicy("Gas limit must be a number higher than 0.")
    price = to_wei(gas_price, unit)
    if price <= 0:
        raise InvalidGasPolicy("Gas price must be a number higher than 0.")
    options = GasOptions(gas_limit=limit, gas_price=price)
    logger.debug("Resolved gas options: limit=%d price=%d wei", limit, price)
    return options


def validate_timeout(timeout: Any) -> int:
    """Return ``timeout`` as a strictly positive number of seconds."""

    value = _strict_int(timeout)
    if value is None or value <= 0:
        raise InvalidTimeout("Timeout must be a number higher than 0.")
    return value
