"""Staged on-chain deposit and claim workflows for nahmii."""

from .allowance import AllowancePlan, plan_allowance
from .amounts import Range, RangeKind, format_units, parse_range, parse_units, select_range
from .confirmations import ConfirmationWaiter
from .errors import (
    ChainError,
    ConfigurationError,
    ConfirmationTimeout,
    InvalidAmount,
    InvalidGasPolicy,
    InvalidRange,
    InvalidTimeout,
    NahmiiError,
    NotFound,
    TransactionReverted,
    UnknownCurrency,
    ValidationError,
    WorkflowAborted,
    ZeroAmount,
)
from .gas import GasOptions, resolve_gas_options, to_wei, validate_timeout
from .model import ConfirmationRecord, Currency, TransactionHandle
from .receipts import Receipt, reduce_receipt, render_report
from .workflow import Reads, StagedWorkflow, Step, WorkflowContext, WorkflowState

__all__ = [
    "AllowancePlan",
    "plan_allowance",
    "Range",
    "RangeKind",
    "format_units",
    "parse_range",
    "parse_units",
    "select_range",
    "ConfirmationWaiter",
    "ChainError",
    "ConfigurationError",
    "ConfirmationTimeout",
    "InvalidAmount",
    "InvalidGasPolicy",
    "InvalidRange",
    "InvalidTimeout",
    "NahmiiError",
    "NotFound",
    "TransactionReverted",
    "UnknownCurrency",
    "ValidationError",
    "WorkflowAborted",
    "ZeroAmount",
    "GasOptions",
    "resolve_gas_options",
    "to_wei",
    "validate_timeout",
    "ConfirmationRecord",
    "Currency",
    "TransactionHandle",
    "Receipt",
    "reduce_receipt",
    "render_report",
    "Reads",
    "StagedWorkflow",
    "Step",
    "WorkflowContext",
    "WorkflowState",
]
