"""Stage declarations for the deposit and claim commands.

Each command is a short list of :class:`~nahmii_cli.workflow.Step` and
:class:`~nahmii_cli.workflow.Reads` declarations; sequencing, confirmation
waiting and failure handling live in :mod:`nahmii_cli.workflow`.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, List, Optional, Protocol, Sequence

from .allowance import AllowancePlan, plan_allowance
from .amounts import Range, format_units
from .confirmations import ConfirmationWaiter
from .config import NahmiiConfig
from .errors import ChainError
from .gas import GasOptions
from .model import Currency, TransactionHandle
from .progress import ProgressReporter
from .receipts import Receipt
from .workflow import Reads, Stage, StagedWorkflow, Step, WorkflowContext

logger = logging.getLogger(__name__)


class DepositWallet(Protocol):
    def balance_of(self, currency: Currency) -> int: ...

    def get_deposit_allowance(self, currency: Currency) -> int: ...

    def deposit_eth(self, amount: int, options: GasOptions) -> TransactionHandle: ...

    def approve_token_deposit(
        self, amount: int, currency: Currency, options: GasOptions
    ) -> TransactionHandle: ...

    def complete_token_deposit(
        self, amount: int, currency: Currency, options: GasOptions
    ) -> TransactionHandle: ...

    def release_revenue_tokens(self, index: int, options: GasOptions) -> TransactionHandle: ...


class Claimant(Protocol):
    def claimable_fees(self, currency: Currency, fee_range: Range) -> int: ...

    def claim_fees(
        self, currency: Currency, fee_range: Range, options: GasOptions
    ) -> TransactionHandle: ...

    def withdrawable_fees(self, currency: Currency) -> int: ...

    def withdraw_fees(
        self, amount: int, currency: Currency, options: GasOptions
    ) -> TransactionHandle: ...


def _allowance_plan(ctx: WorkflowContext, required: int) -> AllowancePlan:
    return plan_allowance(ctx.values["allowance"], required)


def token_deposit_steps(
    wallet: DepositWallet,
    currency: Currency,
    amount_of: Any,
    *,
    hold_slots: bool = False,
) -> List[Stage]:
    """Clear, approve and complete a token deposit.

    ``amount_of`` maps the workflow context to the amount in base units, so
    that the amount may come from a balance read earlier in the workflow.
    The allowance must already be in ``ctx.values["allowance"]``.
    """

    symbol = currency.symbol
    return [
        Step(
            name="clear",
            label="Clearing allowance",
            submit=lambda ctx: wallet.approve_token_deposit(0, currency, ctx.options),
            skip_if=lambda ctx: not _allowance_plan(ctx, amount_of(ctx)).clear,
            report=False,
        ),
        Step(
            name="approve",
            label=f"Approving transfer of {symbol}",
            submit=lambda ctx: wallet.approve_token_deposit(amount_of(ctx), currency, ctx.options),
            skip_if=lambda ctx: not _allowance_plan(ctx, amount_of(ctx)).approve,
            hold_slot=hold_slots,
        ),
        Step(
            name="complete",
            label=f"Registering nahmii deposit of {symbol}",
            submit=lambda ctx: wallet.complete_token_deposit(amount_of(ctx), currency, ctx.options),
            skip_if=lambda ctx: amount_of(ctx) <= 0,
            hold_slot=hold_slots,
        ),
    ]


def deposit_stages(wallet: DepositWallet, currency: Currency, amount: int) -> List[Stage]:
    """Stages depositing ``amount`` base units of ``currency`` into nahmii."""

    display = f"{format_units(amount, currency.decimals)} {currency.symbol}"
    if currency.is_ether:
        return [
            Step(
                name="deposit",
                label=f"Depositing {display}",
                submit=lambda ctx: wallet.deposit_eth(amount, ctx.options),
            )
        ]

    return [
        Reads(
            name="allowance",
            label="Checking allowance",
            queries={"allowance": lambda ctx: wallet.get_deposit_allowance(currency)},
            describe=lambda ctx: f"Allowance retrieved: {format_units(ctx.values['allowance'], currency.decimals)} {currency.symbol}",
        ),
        *token_deposit_steps(wallet, currency, lambda ctx: amount),
    ]


def log_balance(wallet: DepositWallet, currency: Currency, moment: str) -> None:
    """Log the on-chain balance of ``currency`` at debug level; read failures are logged too."""

    if not logger.isEnabledFor(logging.DEBUG):
        return
    try:
        balance = wallet.balance_of(currency)
    except ChainError as exc:
        logger.debug("%s on-chain balance of %s unavailable: %s", moment, currency.symbol, exc)
        return
    logger.debug(
        "%s on-chain balance: %s %s", moment, format_units(balance, currency.decimals), currency.symbol
    )


def claim_nii_stages(wallet: DepositWallet, nii: Currency, period: int) -> List[Stage]:
    """Release the NII of a time locked ``period`` and deposit the whole balance.

    The release step is advisory: the deposit re-reads the on-chain balance
    and proceeds even if the release failed or had nothing to release.
    """

    def describe_balance(ctx: WorkflowContext) -> str:
        balance = format_units(ctx.values["balance"], nii.decimals)
        allowance = format_units(ctx.values["allowance"], nii.decimals)
        logger.debug("Depositing: %s %s", balance, nii.symbol)
        return f"Balance {balance} {nii.symbol}, allowance {allowance} {nii.symbol}"

    return [
        Step(
            name="release",
            label=f"Registering claim for period {period}",
            submit=lambda ctx: wallet.release_revenue_tokens(period - 1, ctx.options),
            required=False,
        ),
        Reads(
            name="deposit state",
            label="Checking balance and allowance",
            queries={
                "balance": lambda ctx: wallet.balance_of(nii),
                "allowance": lambda ctx: wallet.get_deposit_allowance(nii),
            },
            describe=describe_balance,
        ),
        *token_deposit_steps(wallet, nii, lambda ctx: ctx.values["balance"], hold_slots=True),
    ]


def claim_fees_stages(claimant: Claimant, currency: Currency, fee_range: Range) -> List[Stage]:
    """Claim and stage fees accrued in ``fee_range`` then withdraw everything staged."""

    def amount(ctx: WorkflowContext, key: str) -> str:
        return f"{format_units(ctx.values[key], currency.decimals)} {currency.symbol}"

    def describe_claimable(ctx: WorkflowContext) -> str:
        message = f"Claimable amount of {currency.symbol} is {amount(ctx, 'claimable')}"
        if ctx.values["staged"] > 0:
            message += f"; previously claimed (and not withdrawn) amount is {amount(ctx, 'staged')}"
        return message

    scope = f"{fee_range.kind.value}s {fee_range.first}-{fee_range.last}"
    return [
        Reads(
            name="claimable",
            label="Obtaining claimable amount",
            queries={
                "claimable": lambda ctx: claimant.claimable_fees(currency, fee_range),
                "staged": lambda ctx: claimant.withdrawable_fees(currency),
            },
            describe=describe_claimable,
        ),
        Step(
            name="claim",
            label=f"Claiming {currency.symbol} fees for {scope}",
            submit=lambda ctx: claimant.claim_fees(currency, fee_range, ctx.options),
            skip_if=lambda ctx: ctx.values["claimable"] <= 0,
        ),
        Reads(
            name="withdrawable",
            label="Obtaining withdrawable amount",
            queries={"withdrawable": lambda ctx: claimant.withdrawable_fees(currency)},
            describe=lambda ctx: f"Withdrawable amount of {currency.symbol} is {amount(ctx, 'withdrawable')}",
        ),
        Step(
            name="withdraw",
            label=f"Withdrawing {currency.symbol} fees",
            submit=lambda ctx: claimant.withdraw_fees(ctx.values["withdrawable"], currency, ctx.options),
            skip_if=lambda ctx: ctx.values["withdrawable"] <= 0,
        ),
    ]


def run_stages(
    stages: Sequence[Stage],
    *,
    rpc: Any,
    config: NahmiiConfig,
    options: GasOptions,
    timeout: int,
    progress: ProgressReporter | None = None,
    waiter: ConfirmationWaiter | None = None,
    before_release: Callable[[], None] | None = None,
) -> List[Optional[Receipt]]:
    """Execute ``stages`` and close ``rpc`` whatever the outcome.

    ``before_release`` runs on every exit path while ``rpc`` is still open.
    """

    def release() -> None:
        try:
            if before_release is not None:
                before_release()
        finally:
            rpc.close()

    workflow = StagedWorkflow(
        waiter or ConfirmationWaiter(rpc),
        options,
        timeout,
        explorer_url=config.explorer,
        progress=progress,
        release=release,
    )
    return workflow.run(stages)
