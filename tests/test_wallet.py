from __future__ import annotations

import pytest
from eth_abi import encode as abi_encode
from eth_utils import function_signature_to_4byte_selector

from nahmii_cli.amounts import Range, RangeKind
from nahmii_cli.config import NahmiiConfig
from nahmii_cli.currencies import ETH
from nahmii_cli.errors import ConfigurationError
from nahmii_cli.gas import GasOptions
from nahmii_cli.model import Currency
from nahmii_cli.wallet import FeesClaimant, NahmiiWallet

WALLET = "0x" + "ab" * 20
FUND = "0x" + "cd" * 20
REVENUE = "0x" + "ef" * 20
NII = Currency("NII", "0x" + "11" * 20, 15)
OPTIONS = GasOptions(gas_limit=800000, gas_price=12 * 10**9)


def _selector(signature: str) -> str:
    return "0x" + function_signature_to_4byte_selector(signature).hex()


class StubRPC:
    def __init__(self, call_results=None, balance=0) -> None:
        self.call_results = dict(call_results or {})
        self.balance = balance
        self.calls: list[tuple[str, str]] = []
        self.sent: list[dict] = []

    def eth_call(self, to, data, block="latest"):
        self.calls.append((to, data))
        return self.call_results[data[:10]]

    def get_balance(self, address, block="latest"):
        return self.balance

    def send_transaction(self, tx):
        self.sent.append(tx)
        return "0x" + f"{len(self.sent):064x}"


def _config(**contracts) -> NahmiiConfig:
    return NahmiiConfig(
        endpoint="http://127.0.0.1:8545",
        network="ropsten",
        wallet_address=WALLET,
        contracts=contracts,
    )


def _word(value: int, kind: str = "uint256") -> str:
    return "0x" + abi_encode([kind], [value]).hex()


def test_ether_balance_comes_from_the_node() -> None:
    wallet = NahmiiWallet(StubRPC(balance=5), _config(client_fund=FUND))
    assert wallet.balance_of(ETH) == 5


def test_token_balance_and_allowance_are_read_from_the_token() -> None:
    rpc = StubRPC(
        {
            _selector("balanceOf(address)"): _word(1234),
            _selector("allowance(address,address)"): _word(70),
        }
    )
    wallet = NahmiiWallet(rpc, _config(client_fund=FUND))

    assert wallet.balance_of(NII) == 1234
    assert wallet.get_deposit_allowance(NII) == 70
    assert all(to.lower() == NII.address for to, _ in rpc.calls)


def test_deposit_needs_a_client_fund_address() -> None:
    wallet = NahmiiWallet(StubRPC(), _config())
    with pytest.raises(ConfigurationError, match="client_fund"):
        wallet.deposit_eth(1, OPTIONS)


def test_token_deposit_targets_token_then_fund() -> None:
    rpc = StubRPC()
    wallet = NahmiiWallet(rpc, _config(client_fund=FUND))

    wallet.approve_token_deposit(70, NII, OPTIONS)
    wallet.complete_token_deposit(70, NII, OPTIONS)

    assert [tx["to"].lower() for tx in rpc.sent] == [NII.address, FUND]
    assert rpc.sent[0]["data"].startswith(_selector("approve(address,uint256)"))


def test_ether_is_not_an_erc20_token() -> None:
    wallet = NahmiiWallet(StubRPC(), _config(client_fund=FUND))
    with pytest.raises(ValueError):
        wallet.get_deposit_allowance(ETH)


def test_release_uses_revenue_token_manager() -> None:
    rpc = StubRPC()
    NahmiiWallet(rpc, _config(revenue_token_manager=REVENUE)).release_revenue_tokens(0, OPTIONS)
    assert rpc.sent[0]["to"].lower() == REVENUE


def test_fees_claimant_dispatches_on_range_kind() -> None:
    rpc = StubRPC(
        {
            _selector("claimableAmountByBlockNumbers(address,address,uint256,uint256,uint256)"): _word(3, "int256"),
            _selector("claimableAmountByAccruals(address,address,uint256,uint256,uint256)"): _word(4, "int256"),
            _selector("stagedBalance(address,address,uint256)"): _word(9, "int256"),
        }
    )
    claimant = FeesClaimant(rpc, _config(token_holder_revenue_fund=REVENUE))

    assert claimant.claimable_fees(NII, Range(RangeKind.BLOCKS, 1, 2)) == 3
    assert claimant.claimable_fees(NII, Range(RangeKind.ACCRUALS, 0, 2)) == 4
    assert claimant.withdrawable_fees(NII) == 9

    claimant.claim_fees(NII, Range(RangeKind.BLOCKS, 1, 2), OPTIONS)
    claimant.claim_fees(NII, Range(RangeKind.ACCRUALS, 0, 2), OPTIONS)
    claimant.withdraw_fees(9, NII, OPTIONS)
    assert [tx["data"][:10] for tx in rpc.sent] == [
        _selector("claimAndStageByBlockNumbers(address,uint256,uint256,uint256)"),
        _selector("claimAndStageByAccruals(address,uint256,uint256,uint256)"),
        _selector("withdraw(int256,address,uint256,string)"),
    ]


def test_fees_claimant_without_fund_fails_lazily() -> None:
    claimant = FeesClaimant(StubRPC(), _config())
    with pytest.raises(ConfigurationError):
        claimant.withdrawable_fees(NII)
