"""Value objects passed between the wallet, the waiter and the workflow."""

from __future__ import annotations

from dataclasses import dataclass

ETH_ADDRESS = "0x" + "00" * 20


@dataclass(frozen=True)
class TransactionHandle:
    """Identifier returned on submission, before the transaction is mined."""

    hash: str


@dataclass(frozen=True)
class ConfirmationRecord:
    transaction_hash: str
    block_number: int
    gas_used: int
    status: int | None = None


@dataclass(frozen=True)
class Currency:
    """Currency resolved from its symbol.

    Ether is represented by the zero address, matching the currency
    convention of the nahmii contracts.
    """

    symbol: str
    address: str
    decimals: int

    @property
    def is_ether(self) -> bool:
        return self.address.lower() == ETH_ADDRESS
