"""Command line interface for on-chain nahmii deposits and claims.

Every command validates its input before any provider is created, runs its
stages through :class:`~nahmii_cli.workflow.StagedWorkflow` and prints one
JSON array of receipts on stdout. Progress lines and logs go to stderr.
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Any, Callable, List, Optional, Sequence

from .amounts import parse_units, select_range, validate_period
from .commands import claim_fees_stages, claim_nii_stages, deposit_stages, log_balance, run_stages
from .config import NahmiiConfig, load_config, set_default_config_path
from .confirmations import ConfirmationWaiter
from .currencies import CurrencyRegistry
from .errors import NahmiiError, WorkflowAborted
from .gas import (
    DEFAULT_GAS_PRICE_GWEI,
    DEFAULT_TIMEOUT_SECONDS,
    GasOptions,
    resolve_gas_options,
    validate_timeout,
)
from .progress import ConsoleProgress, ProgressReporter
from .receipts import Receipt, render_report
from .rpc_client import EthereumRPCClient, RPCError, format_rpc_hint
from .wallet import FeesClaimant, NahmiiWallet
from .workflow import Stage

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

DEPOSIT_GAS_LIMIT = 600000
CLAIM_FEES_GAS_LIMIT = 6000000
CLAIM_NII_GAS_LIMIT = 800000
NII_SYMBOL = "NII"
BALANCE_UPDATE_NOTICE = "Please allow a few minutes for the nahmii balance to be updated!"


class CLIError(RuntimeError):
    """Raised when a command fails; the message carries the command prefix."""


def _add_gas_arguments(parser: argparse.ArgumentParser, default_gas: int) -> None:
    parser.add_argument(
        "--gas",
        default=default_gas,
        help="Gas limit used per on-chain transaction (default: %(default)s)",
    )
    parser.add_argument(
        "--price",
        default=str(DEFAULT_GAS_PRICE_GWEI),
        help="Gas price in gwei used per transaction (default: %(default)s)",
    )
    parser.add_argument(
        "--timeout",
        default=DEFAULT_TIMEOUT_SECONDS,
        help="Seconds to wait for each on-chain transaction to be mined (default: %(default)s)",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="nahmii", description="nahmii on-chain deposit and claim CLI")
    parser.add_argument("--config", default=None, help="Path to the YAML config (default: ~/.nahmii.yaml)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    deposit_parser = subparsers.add_parser(
        "deposit",
        help="deposit AMOUNT of CURRENCY from the wallet into nahmii",
        epilog="Example: nahmii deposit 1.1 ETH --price 32",
    )
    deposit_parser.add_argument("amount", help="Decimal amount, e.g. 0.07")
    deposit_parser.add_argument("currency", help="Currency symbol, e.g. ETH or NII")
    _add_gas_arguments(deposit_parser, DEPOSIT_GAS_LIMIT)

    claim_parser = subparsers.add_parser("claim", help="claim fees or NII tokens")
    claim_subparsers = claim_parser.add_subparsers(dest="claim_command", required=True)

    fees_parser = claim_subparsers.add_parser(
        "fees",
        help="claim and withdraw fees accrued for CURRENCY",
        epilog="Example: nahmii claim fees NII --accruals 0-2",
    )
    fees_parser.add_argument("currency", help="Currency symbol the fees are paid in")
    range_group = fees_parser.add_mutually_exclusive_group(required=True)
    range_group.add_argument(
        "--accruals", "--accrual", dest="accruals", help="Single accrual index or FIRST-LAST range"
    )
    range_group.add_argument(
        "--blocks", "--block", dest="blocks", help="Single block number or FIRST-LAST range"
    )
    _add_gas_arguments(fees_parser, CLAIM_FEES_GAS_LIMIT)

    nii_parser = claim_subparsers.add_parser(
        "nii",
        help="release time locked NII for PERIOD and deposit all NII to nahmii",
        epilog="Example: nahmii claim nii 1 --price 32",
    )
    nii_parser.add_argument("period", help="Release period, 1 to 120")
    _add_gas_arguments(nii_parser, CLAIM_NII_GAS_LIMIT)

    return parser


def _resolve_policy(args: argparse.Namespace) -> tuple[GasOptions, int]:
    return resolve_gas_options(args.gas, args.price), validate_timeout(args.timeout)


def _execute(
    prefix: str,
    config: NahmiiConfig,
    options: GasOptions,
    timeout: int,
    build: Callable[[EthereumRPCClient], List[Stage]],
    progress: ProgressReporter | None = None,
    finish: Callable[[EthereumRPCClient], None] | None = None,
) -> List[Optional[Receipt]]:
    rpc = EthereumRPCClient(config)
    try:
        stages = build(rpc)
    except BaseException:
        rpc.close()
        raise
    try:
        return run_stages(
            stages,
            rpc=rpc,
            config=config,
            options=options,
            timeout=timeout,
            progress=progress or ConsoleProgress(),
            waiter=ConfirmationWaiter(rpc),
            before_release=(lambda: finish(rpc)) if finish is not None else None,
        )
    except WorkflowAborted as exc:
        message = f"{prefix} failed: {exc}"
        hint = format_rpc_hint(exc.cause) if isinstance(exc.cause, RPCError) else None
        if hint:
            message += f"\nHint: {hint}"
        if exc.results:
            message += f"\nAlready confirmed: {render_report(exc.results)}"
        raise CLIError(message) from exc


def cmd_deposit(args: argparse.Namespace) -> List[Optional[Receipt]]:
    options, timeout = _resolve_policy(args)
    config = load_config()
    currency = CurrencyRegistry(config.tokens).resolve(args.currency)
    amount = parse_units(args.amount, currency.decimals)

    results = _execute(
        "Deposit",
        config,
        options,
        timeout,
        lambda rpc: deposit_stages(NahmiiWallet(rpc, config), currency, amount),
    )
    print(BALANCE_UPDATE_NOTICE, file=sys.stderr)
    return results


def cmd_claim_fees(args: argparse.Namespace) -> List[Optional[Receipt]]:
    fee_range = select_range(blocks=args.blocks, accruals=args.accruals)
    options, timeout = _resolve_policy(args)
    config = load_config()
    currency = CurrencyRegistry(config.tokens).resolve(args.currency)

    return _execute(
        "Claiming of fees",
        config,
        options,
        timeout,
        lambda rpc: claim_fees_stages(FeesClaimant(rpc, config), currency, fee_range),
    )


def cmd_claim_nii(args: argparse.Namespace) -> List[Optional[Receipt]]:
    period = validate_period(args.period)
    options, timeout = _resolve_policy(args)
    config = load_config()
    nii = CurrencyRegistry(config.tokens).resolve(NII_SYMBOL)

    def build(rpc: EthereumRPCClient) -> List[Stage]:
        wallet = NahmiiWallet(rpc, config)
        log_balance(wallet, nii, "Opening")
        return claim_nii_stages(wallet, nii, period)

    def finish(rpc: EthereumRPCClient) -> None:
        log_balance(NahmiiWallet(rpc, config), nii, "Closing")

    results = _execute("Claiming NII", config, options, timeout, build, finish=finish)
    print(BALANCE_UPDATE_NOTICE, file=sys.stderr)
    return results


def _dispatch(args: argparse.Namespace) -> Any:
    if args.command == "deposit":
        return cmd_deposit(args)
    if args.command == "claim" and args.claim_command == "fees":
        return cmd_claim_fees(args)
    if args.command == "claim" and args.claim_command == "nii":
        return cmd_claim_nii(args)
    raise CLIError(f"Unknown command: {args.command}")  # pragma: no cover - argparse enforces choices


def main(argv: Sequence[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    set_default_config_path(args.config)
    try:
        results = _dispatch(args)
    except KeyboardInterrupt:  # pragma: no cover - interactive use
        logger.info("Interrupted by user")
        return
    except (CLIError, NahmiiError) as exc:
        parser.exit(1, f"error: {exc}\n")
    print(render_report(results))


if __name__ == "__main__":
    main(sys.argv[1:])
