"""Call encoding and thin wrappers around the contracts the CLI talks to."""

from __future__ import annotations

import logging
from typing import Any, Sequence

from eth_abi import decode as abi_decode
from eth_abi import encode as abi_encode
from eth_abi.exceptions import DecodingError
from eth_utils import function_signature_to_4byte_selector, is_address, to_checksum_address

from .errors import ConfigurationError
from .gas import GasOptions
from .model import TransactionHandle
from .rpc_client import EthereumRPCClient, RPCTransportError, to_quantity

logger = logging.getLogger(__name__)


def checksum(address: str) -> str:
    if not is_address(address):
        raise ConfigurationError(f"Invalid Ethereum address: {address}")
    return to_checksum_address(address)


def encode_call(signature: str, args: Sequence[Any] = ()) -> str:
    """Return hex call data for ``signature`` (e.g. ``"approve(address,uint256)"``)."""

    selector = function_signature_to_4byte_selector(signature)
    arg_types = _argument_types(signature)
    payload = abi_encode(arg_types, list(args)) if arg_types else b""
    return "0x" + (selector + payload).hex()


def decode_result(types: Sequence[str], data: str | None) -> tuple[Any, ...]:
    if not data or data == "0x":
        raise RPCTransportError("Contract call returned no data; check the contract address")
    if not isinstance(data, str):
        raise RPCTransportError(f"Contract call returned unexpected data: {data!r}")
    try:
        raw = bytes.fromhex(data[2:] if data.startswith("0x") else data)
        return tuple(abi_decode(list(types), raw))
    except (DecodingError, ValueError) as exc:
        raise RPCTransportError(f"Could not decode contract call result {data!r}: {exc}") from exc


def _argument_types(signature: str) -> list[str]:
    inner = signature[signature.index("(") + 1 : signature.rindex(")")]
    return [part.strip() for part in inner.split(",") if part.strip()]


class Contract:
    """Base wrapper binding a contract address to the wallet that calls it."""

    def __init__(self, rpc: EthereumRPCClient, address: str, sender: str) -> None:
        self.rpc = rpc
        self.address = checksum(address)
        self.sender = checksum(sender)

    def _read_uint(self, signature: str, *args: Any) -> int:
        result = self.rpc.eth_call(self.address, encode_call(signature, args))
        (value,) = decode_result(["uint256"], result)
        return int(value)

    def _read_int(self, signature: str, *args: Any) -> int:
        result = self.rpc.eth_call(self.address, encode_call(signature, args))
        (value,) = decode_result(["int256"], result)
        return int(value)

    def _transact(
        self,
        signature: str,
        args: Sequence[Any],
        options: GasOptions,
        *,
        value: int = 0,
    ) -> TransactionHandle:
        tx = {
            "from": self.sender,
            "to": self.address,
            "data": encode_call(signature, args),
            "value": to_quantity(value),
        }
        tx.update(options.to_tx_fields())
        tx_hash = self.rpc.send_transaction(tx)
        logger.info("Submitted %s to %s as %s", signature, self.address, tx_hash)
        return TransactionHandle(hash=tx_hash)


class ERC20Token(Contract):
    def balance_of(self, owner: str) -> int:
        return self._read_uint("balanceOf(address)", checksum(owner))

    def allowance(self, owner: str, spender: str) -> int:
        return self._read_uint("allowance(address,address)", checksum(owner), checksum(spender))

    def approve(self, spender: str, amount: int, options: GasOptions) -> TransactionHandle:
        return self._transact("approve(address,uint256)", [checksum(spender), int(amount)], options)


class ClientFund(Contract):
    """The nahmii client fund receiving on-chain deposits."""

    def receive_ethers(self, amount: int, options: GasOptions) -> TransactionHandle:
        return self._transact(
            "receiveEthersTo(address,string)", [self.sender, ""], options, value=int(amount)
        )

    def receive_tokens(self, amount: int, token: str, options: GasOptions) -> TransactionHandle:
        return self._transact(
            "receiveTokensTo(address,string,int256,address,uint256,string)",
            [self.sender, "", int(amount), checksum(token), 0, "ERC20"],
            options,
        )


class TokenHolderRevenueFund(Contract):
    """Fee accruals claimable by token holders, by block range or accrual index."""

    def claimable_by_blocks(self, currency: str, first: int, last: int) -> int:
        return self._read_int(
            "claimableAmountByBlockNumbers(address,address,uint256,uint256,uint256)",
            self.sender, checksum(currency), 0, first, last,
        )

    def claimable_by_accruals(self, currency: str, first: int, last: int) -> int:
        return self._read_int(
            "claimableAmountByAccruals(address,address,uint256,uint256,uint256)",
            self.sender, checksum(currency), 0, first, last,
        )

    def claim_and_stage_by_blocks(
        self, currency: str, first: int, last: int, options: GasOptions
    ) -> TransactionHandle:
        return self._transact(
            "claimAndStageByBlockNumbers(address,uint256,uint256,uint256)",
            [checksum(currency), 0, first, last],
            options,
        )

    def claim_and_stage_by_accruals(
        self, currency: str, first: int, last: int, options: GasOptions
    ) -> TransactionHandle:
        return self._transact(
            "claimAndStageByAccruals(address,uint256,uint256,uint256)",
            [checksum(currency), 0, first, last],
            options,
        )

    def staged_balance(self, currency: str) -> int:
        return self._read_int(
            "stagedBalance(address,address,uint256)", self.sender, checksum(currency), 0
        )

    def withdraw(self, amount: int, currency: str, options: GasOptions) -> TransactionHandle:
        return self._transact(
            "withdraw(int256,address,uint256,string)",
            [int(amount), checksum(currency), 0, "ERC20" if int(currency, 16) else ""],
            options,
        )


class RevenueTokenManager(Contract):
    """Time locked release schedule of the NII revenue token."""

    def release(self, index: int, options: GasOptions) -> TransactionHandle:
        return self._transact("release(uint256)", [int(index)], options)
