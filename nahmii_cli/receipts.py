"""Reduce confirmation records into the public report shape."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Optional, Sequence

from .model import ConfirmationRecord

COMPACT_JSON_SEPARATORS = (",", ":")


@dataclass(frozen=True)
class Receipt:
    transaction_hash: str
    block_number: int
    gas_used: str
    href: str

    def to_jsonable(self) -> dict[str, Any]:
        return {
            "transactionHash": self.transaction_hash,
            "blockNumber": self.block_number,
            "gasUsed": self.gas_used,
            "href": self.href,
        }


def explorer_tx_url(explorer_url: str, tx_hash: str) -> str:
    return f"{explorer_url.rstrip('/')}/tx/{tx_hash}"


def reduce_receipt(record: Optional[ConfirmationRecord], explorer_url: str) -> Optional[Receipt]:
    """Map a confirmation record to a :class:`Receipt`; ``None`` stays ``None``."""

    if record is None:
        return None
    return Receipt(
        transaction_hash=record.transaction_hash,
        block_number=record.block_number,
        gas_used=str(int(record.gas_used)),
        href=explorer_tx_url(explorer_url, record.transaction_hash),
    )


def render_report(results: Sequence[Optional[Receipt]]) -> str:
    """Serialize a workflow result as a compact, order-preserving JSON array."""

    payload = [entry.to_jsonable() if entry is not None else None for entry in results]
    return json.dumps(payload, separators=COMPACT_JSON_SEPARATORS)
