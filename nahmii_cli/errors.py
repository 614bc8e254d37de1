"""Exception hierarchy shared by the nahmii command line tooling.

Input validation errors are raised before any provider is created, so they
never leave on-chain side effects behind. ``ChainError`` subclasses describe
failures of a single step and are the only errors an advisory step may
absorb.
"""

from __future__ import annotations

from typing import Any, Sequence


class NahmiiError(RuntimeError):
    """Base class for every error surfaced by the CLI."""


class ValidationError(NahmiiError, ValueError):
    """Raised when user input is rejected before touching the chain."""


class InvalidAmount(ValidationError):
    """Raised when an amount is not a non-negative decimal numeral."""


class ZeroAmount(ValidationError):
    """Raised when an amount normalizes to exactly zero base units."""


class InvalidRange(ValidationError):
    """Raised when a block or accrual range cannot be parsed."""


class InvalidGasPolicy(ValidationError):
    """Raised when gas limit or gas price are not strictly positive."""


class InvalidTimeout(ValidationError):
    """Raised when a confirmation timeout is not a positive number of seconds."""


class ConfigurationError(NahmiiError):
    """Raised when configuration is invalid."""


class UnknownCurrency(NahmiiError):
    """Raised when a currency symbol is not known to the registry."""


class ChainError(NahmiiError):
    """Raised when a submission, query or confirmation fails on-chain."""


class NotFound(ChainError):
    """Raised when the node has no record of a requested object."""


class ConfirmationTimeout(ChainError):
    """Raised when a transaction is not mined within the allotted time.

    The transaction may still be mined later; the hash is kept so the
    operator can follow up.
    """

    def __init__(self, tx_hash: str, timeout: float) -> None:
        super().__init__(
            f"Transaction {tx_hash} was not mined within {timeout:g} seconds"
        )
        self.tx_hash = tx_hash
        self.timeout = timeout


class TransactionReverted(ChainError):
    """Raised when a mined transaction reports a failed execution status."""

    def __init__(self, tx_hash: str, block_number: int | None = None) -> None:
        where = f" in block {block_number}" if block_number is not None else ""
        super().__init__(f"Transaction {tx_hash} reverted{where}")
        self.tx_hash = tx_hash
        self.block_number = block_number


class WorkflowAborted(NahmiiError):
    """Raised when a required step fails and the remaining steps are dropped.

    ``results`` holds the receipts of the steps that had already committed so
    that callers can tell the operator what is now permanent on-chain.
    """

    def __init__(self, step: str, cause: BaseException, results: Sequence[Any] = ()) -> None:
        super().__init__(f"{step}: {cause}")
        self.step = step
        self.cause = cause
        self.results = list(results)
