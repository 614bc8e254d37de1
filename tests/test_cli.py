from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from nahmii_cli import cli
from nahmii_cli.model import TransactionHandle
from nahmii_cli.rpc_client import RPCError

WALLET = "0x" + "ab" * 20
FUND = "0x" + "cd" * 20
TOKEN = "0x" + "11" * 20


class StubRPC:
    instances: list["StubRPC"] = []

    def __init__(self, config) -> None:
        self.config = config
        self.closed = 0
        StubRPC.instances.append(self)

    def get_transaction_receipt(self, tx_hash):
        return {"transactionHash": tx_hash, "blockNumber": "0x2a", "gasUsed": "0x5208", "status": "0x1"}

    def close(self) -> None:
        self.closed += 1


class StubWallet:
    calls: list[tuple] = []
    allowance = 0
    balance = 0
    fail_approve = False

    def __init__(self, rpc, config) -> None:
        self.rpc = rpc

    def _handle(self) -> TransactionHandle:
        return TransactionHandle(f"0x{len(StubWallet.calls):064x}")

    def balance_of(self, currency):
        return StubWallet.balance

    def get_deposit_allowance(self, currency):
        return StubWallet.allowance

    def deposit_eth(self, amount, options):
        StubWallet.calls.append(("deposit_eth", amount, options.gas_limit, options.gas_price))
        return self._handle()

    def approve_token_deposit(self, amount, currency, options):
        StubWallet.calls.append(("approve", amount, currency.symbol))
        if StubWallet.fail_approve:
            raise RPCError(-32000, "insufficient funds for gas * price + value")
        return self._handle()

    def complete_token_deposit(self, amount, currency, options):
        StubWallet.calls.append(("complete", amount, currency.symbol))
        return self._handle()

    def release_revenue_tokens(self, index, options):
        StubWallet.calls.append(("release", index, options.gas_limit))
        return self._handle()


class StubClaimant:
    calls: list[tuple] = []

    def __init__(self, rpc, config) -> None:
        pass

    def claimable_fees(self, currency, fee_range):
        return 5

    def claim_fees(self, currency, fee_range, options):
        StubClaimant.calls.append(("claim", fee_range.kind.value, fee_range.first, fee_range.last))
        return TransactionHandle("0x" + "01" * 32)

    def withdrawable_fees(self, currency):
        return 5

    def withdraw_fees(self, amount, currency, options):
        StubClaimant.calls.append(("withdraw", amount, options.gas_limit))
        return TransactionHandle("0x" + "02" * 32)


@pytest.fixture
def config_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    for name in ("NAHMII_ETH_ENDPOINT", "NAHMII_NETWORK", "NAHMII_WALLET_ADDRESS", "NAHMII_EXPLORER_URL"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr("nahmii_cli.config._CONFIG_PATH_OVERRIDE", None)
    monkeypatch.setattr(cli, "EthereumRPCClient", StubRPC)
    monkeypatch.setattr(cli, "NahmiiWallet", StubWallet)
    monkeypatch.setattr(cli, "FeesClaimant", StubClaimant)
    StubRPC.instances = []
    StubWallet.calls = []
    StubWallet.allowance = 0
    StubWallet.balance = 0
    StubWallet.fail_approve = False
    StubClaimant.calls = []

    path = tmp_path / "nahmii.yaml"
    path.write_text(
        f"""
ethereum:
  endpoint: http://127.0.0.1:8545
  network: ropsten
wallet:
  address: "{WALLET}"
contracts:
  client_fund: "{FUND}"
  revenue_token_manager: "{FUND}"
  token_holder_revenue_fund: "{FUND}"
tokens:
  - symbol: TT1
    address: "{TOKEN}"
    decimals: 18
  - symbol: NII
    address: "{TOKEN}"
    decimals: 15
"""
    )
    return path


def _main(config_file: Path, *argv: str) -> None:
    cli.main(["--config", str(config_file), *argv])


def test_parser_defaults_per_command() -> None:
    parser = cli.build_parser()
    deposit = parser.parse_args(["deposit", "1.1", "ETH"])
    assert (deposit.gas, deposit.price, deposit.timeout) == (600000, "12", 60)
    fees = parser.parse_args(["claim", "fees", "NII", "--accrual", "0-2"])
    assert fees.gas == 6000000 and fees.accruals == "0-2" and fees.blocks is None
    nii = parser.parse_args(["claim", "nii", "3"])
    assert nii.gas == 800000


def test_claim_fees_range_options_are_mutually_exclusive() -> None:
    parser = cli.build_parser()
    with pytest.raises(SystemExit):
        parser.parse_args(["claim", "fees", "NII", "--blocks", "1", "--accruals", "1"])
    with pytest.raises(SystemExit):
        parser.parse_args(["claim", "fees", "NII"])


def test_deposit_eth_prints_single_receipt(config_file: Path, capsys: pytest.CaptureFixture[str]) -> None:
    _main(config_file, "deposit", "1.1", "ETH", "--gas", "2", "--price", "2")

    assert StubWallet.calls == [("deposit_eth", 1100000000000000000, 2, 2000000000)]
    out, err = capsys.readouterr()
    report = json.loads(out)
    assert len(report) == 1
    assert report[0]["blockNumber"] == 42
    assert report[0]["gasUsed"] == "21000"
    assert report[0]["href"].startswith("https://ropsten.etherscan.io/tx/0x")
    assert cli.BALANCE_UPDATE_NOTICE in err
    assert [rpc.closed for rpc in StubRPC.instances] == [1]


def test_deposit_token_approves_and_completes(config_file: Path, capsys: pytest.CaptureFixture[str]) -> None:
    _main(config_file, "deposit", "0.07", "TT1")

    assert StubWallet.calls == [
        ("approve", 70000000000000000, "TT1"),
        ("complete", 70000000000000000, "TT1"),
    ]
    assert len(json.loads(capsys.readouterr().out)) == 2


@pytest.mark.parametrize(
    "amount, message",
    [("foo", "Amount must be a positive number"), ("0", "Amount must be greater than zero")],
)
def test_invalid_amount_fails_before_provider(
    config_file: Path, capsys: pytest.CaptureFixture[str], amount: str, message: str
) -> None:
    with pytest.raises(SystemExit) as excinfo:
        _main(config_file, "deposit", amount, "ETH")

    assert excinfo.value.code == 1
    assert message in capsys.readouterr().err
    assert StubRPC.instances == []
    assert StubWallet.calls == []


@pytest.mark.parametrize("flag, value", [("--gas", "0"), ("--price", "-1"), ("--timeout", "0")])
def test_invalid_gas_policy_fails_before_provider(config_file: Path, flag: str, value: str) -> None:
    with pytest.raises(SystemExit) as excinfo:
        _main(config_file, "deposit", "1", "ETH", flag, value)
    assert excinfo.value.code == 1
    assert StubRPC.instances == []


def test_unknown_currency_is_reported(config_file: Path, capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit):
        _main(config_file, "deposit", "1", "DOGE")
    assert "Unknown currency" in capsys.readouterr().err
    assert StubRPC.instances == []


def test_failed_step_reports_prefix_and_hint(config_file: Path, capsys: pytest.CaptureFixture[str]) -> None:
    StubWallet.fail_approve = True
    with pytest.raises(SystemExit) as excinfo:
        _main(config_file, "deposit", "0.07", "TT1")

    assert excinfo.value.code == 1
    out, err = capsys.readouterr()
    assert out == ""
    assert "error: Deposit failed: approve:" in err
    assert "Hint: The wallet cannot pay" in err
    assert [call[0] for call in StubWallet.calls] == ["approve"]
    assert [rpc.closed for rpc in StubRPC.instances] == [1]


def test_claim_fees_runs_claim_and_withdraw(config_file: Path, capsys: pytest.CaptureFixture[str]) -> None:
    _main(config_file, "claim", "fees", "TT1", "--blocks", "10-20")

    assert StubClaimant.calls == [("claim", "block", 10, 20), ("withdraw", 5, 6000000)]
    assert len(json.loads(capsys.readouterr().out)) == 2


def test_claim_nii_releases_then_deposits(config_file: Path, capsys: pytest.CaptureFixture[str]) -> None:
    StubWallet.balance = 10**15
    _main(config_file, "claim", "nii", "1")

    assert StubWallet.calls == [
        ("release", 0, 800000),
        ("approve", 10**15, "NII"),
        ("complete", 10**15, "NII"),
    ]
    out, err = capsys.readouterr()
    assert len(json.loads(out)) == 3
    assert cli.BALANCE_UPDATE_NOTICE in err


@pytest.mark.parametrize("period", ["0", "121", "x"])
def test_claim_nii_rejects_invalid_period(config_file: Path, period: str) -> None:
    with pytest.raises(SystemExit) as excinfo:
        _main(config_file, "claim", "nii", period)
    assert excinfo.value.code == 1
    assert StubRPC.instances == []


def test_claim_nii_logs_opening_and_closing_balance(
    config_file: Path, caplog: pytest.LogCaptureFixture
) -> None:
    caplog.set_level(logging.DEBUG, logger="nahmii_cli.commands")
    StubWallet.balance = 10**15
    _main(config_file, "claim", "nii", "1")

    messages = [r.getMessage() for r in caplog.records if r.name == "nahmii_cli.commands"]
    assert "Opening on-chain balance: 1 NII" in messages
    assert messages[-1] == "Closing on-chain balance: 1 NII"
    assert [rpc.closed for rpc in StubRPC.instances] == [1]


def test_claim_nii_logs_closing_balance_when_aborted(
    config_file: Path, caplog: pytest.LogCaptureFixture
) -> None:
    caplog.set_level(logging.DEBUG, logger="nahmii_cli.commands")
    StubWallet.balance = 10**15
    StubWallet.fail_approve = True
    with pytest.raises(SystemExit):
        _main(config_file, "claim", "nii", "1")

    messages = [r.getMessage() for r in caplog.records if r.name == "nahmii_cli.commands"]
    assert "Closing on-chain balance: 1 NII" in messages
