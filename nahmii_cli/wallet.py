"""Wallet-level operations used by the deposit and claim workflows."""

from __future__ import annotations

import logging

from .amounts import Range, RangeKind
from .config import NahmiiConfig
from .contracts import (
    ClientFund,
    ERC20Token,
    RevenueTokenManager,
    TokenHolderRevenueFund,
    checksum,
)
from .gas import GasOptions
from .model import Currency, TransactionHandle
from .rpc_client import EthereumRPCClient

logger = logging.getLogger(__name__)


class NahmiiWallet:
    """Submit deposits and read balances for the configured wallet address."""

    def __init__(self, rpc: EthereumRPCClient, config: NahmiiConfig) -> None:
        self.rpc = rpc
        self.config = config
        self.address = checksum(config.wallet_address)

    @property
    def client_fund(self) -> ClientFund:
        return ClientFund(self.rpc, self.config.contract("client_fund"), self.address)

    def _token(self, currency: Currency) -> ERC20Token:
        if currency.is_ether:
            raise ValueError("Ether is not an ERC-20 token")
        return ERC20Token(self.rpc, currency.address, self.address)

    def balance_of(self, currency: Currency) -> int:
        if currency.is_ether:
            return self.rpc.get_balance(self.address)
        return self._token(currency).balance_of(self.address)

    def get_deposit_allowance(self, currency: Currency) -> int:
        return self._token(currency).allowance(self.address, self.client_fund.address)

    def deposit_eth(self, amount: int, options: GasOptions) -> TransactionHandle:
        logger.info("Depositing %d wei from %s", amount, self.address)
        return self.client_fund.receive_ethers(amount, options)

    def approve_token_deposit(
        self, amount: int, currency: Currency, options: GasOptions
    ) -> TransactionHandle:
        return self._token(currency).approve(self.client_fund.address, amount, options)

    def complete_token_deposit(
        self, amount: int, currency: Currency, options: GasOptions
    ) -> TransactionHandle:
        return self.client_fund.receive_tokens(amount, currency.address, options)

    def release_revenue_tokens(self, index: int, options: GasOptions) -> TransactionHandle:
        manager = RevenueTokenManager(
            self.rpc, self.config.contract("revenue_token_manager"), self.address
        )
        return manager.release(index, options)


class FeesClaimant:
    """Claim and withdraw token holder fees for one wallet."""

    def __init__(self, rpc: EthereumRPCClient, config: NahmiiConfig) -> None:
        self.rpc = rpc
        self.config = config

    @property
    def fund(self) -> TokenHolderRevenueFund:
        return TokenHolderRevenueFund(
            self.rpc, self.config.contract("token_holder_revenue_fund"), self.config.wallet_address
        )

    def claimable_fees(self, currency: Currency, fee_range: Range) -> int:
        if fee_range.kind is RangeKind.BLOCKS:
            return self.fund.claimable_by_blocks(currency.address, fee_range.first, fee_range.last)
        return self.fund.claimable_by_accruals(currency.address, fee_range.first, fee_range.last)

    def claim_fees(
        self, currency: Currency, fee_range: Range, options: GasOptions
    ) -> TransactionHandle:
        if fee_range.kind is RangeKind.BLOCKS:
            return self.fund.claim_and_stage_by_blocks(
                currency.address, fee_range.first, fee_range.last, options
            )
        return self.fund.claim_and_stage_by_accruals(
            currency.address, fee_range.first, fee_range.last, options
        )

    def withdrawable_fees(self, currency: Currency) -> int:
        return self.fund.staged_balance(currency.address)

    def withdraw_fees(
        self, amount: int, currency: Currency, options: GasOptions
    ) -> TransactionHandle:
        return self.fund.withdraw(amount, currency.address, options)
