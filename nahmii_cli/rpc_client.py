"""JSON-RPC client for Ethereum nodes backing the nahmii CLI.

The client forwards well-typed requests and surfaces errors clearly; it does
not sign anything itself. Transactions are submitted with
``eth_sendTransaction`` so the node's managed account signs them, and the
single ``requests`` session it holds is the chain-state resource a workflow
releases when it finishes.
"""

from __future__ import annotations

import json
import logging
import uuid
from typing import Any, Dict, Optional

import requests
from requests import RequestException, Response

from .config import NahmiiConfig
from .errors import ChainError

logger = logging.getLogger(__name__)


class RPCError(ChainError):
    """Raised when the Ethereum node responds with an RPC error."""

    def __init__(self, code: int, message: str) -> None:
        super().__init__(f"RPC error {code}: {message}")
        self.code = code
        self.message = message


class RPCTransportError(ChainError):
    """Raised when the RPC endpoint is unreachable or returns malformed data."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def format_rpc_hint(error_obj: dict[str, Any] | RPCError | None) -> str | None:
    """Return a human-friendly hint for common Ethereum JSON-RPC errors."""

    if error_obj is None:
        return None

    message = ""
    if isinstance(error_obj, RPCError):
        message = error_obj.message
    elif isinstance(error_obj, dict):
        message = str(error_obj.get("message", ""))
    lowered = message.lower()

    if "insufficient funds" in lowered:
        return (
            "The wallet cannot pay for value plus gas. Fund the wallet or lower --gas/--price."
        )
    if "nonce too low" in lowered or "replacement transaction underpriced" in lowered:
        return (
            "Another transaction from this wallet is pending or was just mined. "
            "Wait for it to confirm, then re-run the command; completed steps are skipped."
        )
    if "intrinsic gas too low" in lowered or "gas too low" in lowered:
        return "The gas limit is too low for this transaction. Increase --gas."
    if "execution reverted" in lowered:
        return (
            "The contract rejected the call. Check the amount, the allowance and that the "
            "wallet is entitled to the requested claim."
        )
    if "unknown account" in lowered or "authentication needed" in lowered or "locked" in lowered:
        return (
            "The node does not hold an unlocked key for the wallet address. Unlock the account "
            "on the node or point NAHMII_ETH_ENDPOINT at a node that manages it."
        )
    return None


def to_quantity(value: int) -> str:
    return hex(int(value))


def from_quantity(value: Any) -> int:
    """Decode a hex quantity (``"0x1a"``) or plain integer returned by a node."""

    if isinstance(value, bool):
        raise RPCTransportError(f"Unexpected quantity from node: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value, 16) if value.startswith(("0x", "0X")) else int(value)
        except ValueError as exc:
            raise RPCTransportError(f"Unexpected quantity from node: {value!r}") from exc
    raise RPCTransportError(f"Unexpected quantity from node: {value!r}")


class EthereumRPCClient:
    """Typed JSON-RPC client for Ethereum compatible nodes.

    Each helper maps directly to an RPC method and returns the parsed JSON
    result; quantity helpers decode hex strings into Python ``int`` so that
    balances and gas figures never pass through floating point.
    """

    def __init__(self, config: NahmiiConfig) -> None:
        self.config = config
        self._session: requests.Session | None = requests.Session()
        self._url = config.endpoint
        self._timeout = config.request_timeout

    def call(self, method: str, params: Optional[list[Any]] = None) -> Any:
        """Perform a JSON-RPC request."""

        if self._session is None:
            raise RPCTransportError("RPC client has been closed")
        payload = {
            "jsonrpc": "2.0",
            "id": str(uuid.uuid4()),
            "method": method,
            "params": params or [],
        }
        logger.debug("RPC call %s params=%s", method, params)
        try:
            response = self._session.post(
                self._url,
                data=json.dumps(payload),
                headers={"content-type": "application/json"},
                timeout=self._timeout,
            )
        except RequestException as exc:
            logger.error(
                "RPC connection failed: %s",
                exc,
                exc_info=logger.isEnabledFor(logging.DEBUG),
            )
            raise RPCTransportError(
                "RPC connection failed. Ensure your Ethereum node is reachable and "
                "NAHMII_ETH_ENDPOINT (or ~/.nahmii.yaml) points to the right URL."
            ) from exc
        try:
            self._raise_for_status(response)
        except requests.HTTPError as exc:
            raise RPCTransportError(
                "RPC server returned an HTTP error; check the endpoint URL and credentials.",
                status_code=response.status_code,
            ) from exc
        try:
            result = response.json()
        except ValueError as exc:
            logger.debug("RPC JSON parse error: %s", response.text, exc_info=True)
            raise RPCTransportError("RPC server returned malformed JSON") from exc
        if not isinstance(result, dict):
            raise RPCTransportError("RPC server returned an unexpected payload")
        if result.get("error"):
            error = result["error"]
            raise RPCError(error.get("code", -1), error.get("message", "unknown"))
        return result.get("result")

    def _raise_for_status(self, response: Response) -> None:
        if not response.ok:
            logger.error("RPC HTTP error %s from %s", response.status_code, response.url)
            logger.debug("RPC error body: %s", response.text)
        response.raise_for_status()

    def close(self) -> None:
        """Release the HTTP session; later calls fail with a transport error."""

        if self._session is not None:
            self._session.close()
            self._session = None
            logger.debug("Closed RPC session to %s", self._url)

    # Convenience wrappers -------------------------------------------------

    def chain_id(self) -> int:
        return from_quantity(self.call("eth_chainId"))

    def block_number(self) -> int:
        return from_quantity(self.call("eth_blockNumber"))

    def get_balance(self, address: str, block: str = "latest") -> int:
        return from_quantity(self.call("eth_getBalance", [address, block]))

    def eth_call(self, to: str, data: str, block: str = "latest") -> str:
        return self.call("eth_call", [{"to": to, "data": data}, block])

    def send_transaction(self, tx: Dict[str, Any]) -> str:
        tx_hash = self.call("eth_sendTransaction", [tx])
        if not isinstance(tx_hash, str):
            raise RPCTransportError(f"Node returned no transaction hash: {tx_hash!r}")
        return tx_hash

    def get_transaction_receipt(self, tx_hash: str) -> Dict[str, Any] | None:
        return self.call("eth_getTransactionReceipt", [tx_hash])
