"""Chain connector: the JSON-RPC session used by one invocation.

Chain id, nonce and gas price are read from the node on every call and
never cached, so a pipeline always signs with fresh values. Failures of
those reads are fatal (NodeConnectionError). The preflight ``eth_call``
is the exception: its failure is reported in a SimulationResult and left
to the submitter's simulation policy.
"""
from typing import Any, Callable, Optional
from urllib.parse import urlparse

from eth_utils import to_checksum_address
from hexbytes import HexBytes
from web3 import Web3
from web3.exceptions import TimeExhausted, TransactionNotFound

from .constants import ABI_SELECTOR_LENGTH, ABI_WORD_LENGTH, PROVIDER_TIMEOUT_SECONDS, REVERT_SELECTOR
from .errors import BroadcastError, ConfirmationTimeoutError, NodeConnectionError
from .models import EncodedCall, SimulationResult
from .utils.logging import get_logger

__all__ = ["ChainConnector", "ChainSession", "decode_revert_reason", "rpc_error_message"]

_logger = get_logger(__name__)


def decode_revert_reason(raw: str) -> Optional[str]:
    """Decode Solidity revert reason from error data.

    Args:
        raw: Hex-encoded error data string

    Returns:
        Decoded revert reason string, or None if decoding fails
    """
    # Standard Solidity revertWithReason selector 0x08c379a0 + encoded string
    if raw.startswith(REVERT_SELECTOR) and len(raw) >= 10:
        try:
            data = bytes.fromhex(raw[2:])
            # offset: 4 bytes selector + 32 bytes offset + 32 bytes length
            if len(data) >= ABI_SELECTOR_LENGTH + ABI_WORD_LENGTH + ABI_WORD_LENGTH:
                offset = ABI_SELECTOR_LENGTH + ABI_WORD_LENGTH
                strlen = int.from_bytes(data[offset : offset + ABI_WORD_LENGTH], "big")
                reason_start = offset + ABI_WORD_LENGTH
                reason_bytes = data[reason_start : reason_start + strlen]
                return reason_bytes.decode(errors="ignore")
        except (ValueError, UnicodeDecodeError):
            return None
    return None


def rpc_error_message(exc: Exception) -> str:
    """Extract the node's error message from a web3 exception."""
    payload: Any = exc.args[0] if exc.args else None
    rpc_response = getattr(exc, "rpc_response", None)
    if isinstance(rpc_response, dict) and isinstance(rpc_response.get("error"), dict):
        payload = rpc_response["error"]

    if isinstance(payload, dict):
        reason = payload.get("message") or payload.get("reason")
        data = payload.get("data")
        if isinstance(data, str):
            decoded = decode_revert_reason(data)
            if decoded:
                reason = decoded
        return reason or str(exc)

    data = getattr(exc, "data", None)
    if isinstance(data, str):
        decoded = decode_revert_reason(data)
        if decoded:
            return decoded
    return str(exc)


class ChainSession:
    """RPC session bound to one endpoint."""

    def __init__(self, w3: Web3, endpoint: str):
        self.w3 = w3
        self.endpoint = endpoint

    def _read(self, what: str, fn: Callable[[], Any]) -> Any:
        try:
            return fn()
        except Exception as e:
            raise NodeConnectionError(
                f"Failed to fetch {what}: {rpc_error_message(e)}",
                endpoint=self.endpoint,
            ) from e

    def chain_id(self) -> int:
        return int(self._read("chain id", lambda: self.w3.eth.chain_id))

    def nonce(self, address: str) -> int:
        """Next unused nonce of ``address``, including pending transactions."""
        return int(self._read(
            "nonce",
            lambda: self.w3.eth.get_transaction_count(to_checksum_address(address), "pending"),
        ))

    def suggested_gas_price(self) -> int:
        return int(self._read("gas price", lambda: self.w3.eth.gas_price))

    def simulate(self, call: EncodedCall, sender: str) -> SimulationResult:
        """Run the call with ``eth_call`` against the latest block without committing it."""
        params = {
            "from": to_checksum_address(sender),
            "to": to_checksum_address(call.destination),
            "data": Web3.to_hex(call.data),
        }
        try:
            raw = bytes(self.w3.eth.call(params))
        except Exception as e:
            message = rpc_error_message(e)
            _logger.warning(
                "Failed to call contract",
                extra={"operation": call.operation, "destination": call.destination, "error": message},
            )
            return SimulationResult(raw=None, error=message)
        return SimulationResult(raw=raw)

    def send_raw_transaction(self, raw_transaction: bytes, tx_hash: Optional[str] = None) -> str:
        """Broadcast a signed transaction.

        Raises:
            BroadcastError: If the node rejects the transaction (message kept verbatim)
        """
        try:
            sent = self.w3.eth.send_raw_transaction(HexBytes(raw_transaction))
        except Exception as e:
            raise BroadcastError(
                rpc_error_message(e),
                tx_hash=tx_hash,
                details={"endpoint": self.endpoint},
            ) from e
        return Web3.to_hex(sent)

    def get_transaction(self, tx_hash: str) -> Optional[Any]:
        """Look up a transaction; None if the node does not know it."""
        try:
            return self.w3.eth.get_transaction(tx_hash)
        except TransactionNotFound:
            return None
        except Exception as e:
            raise NodeConnectionError(
                f"Failed to get transaction: {rpc_error_message(e)}",
                endpoint=self.endpoint,
                details={"tx_hash": tx_hash},
            ) from e

    def wait_for_receipt(self, tx_hash: str, timeout: float, poll_latency: float) -> Any:
        """Block until the transaction is mined and return its receipt.

        Raises:
            ConfirmationTimeoutError: If it is not mined within ``timeout`` seconds
            NodeConnectionError: If the node fails while polling
        """
        try:
            return self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=timeout, poll_latency=poll_latency)
        except TimeExhausted as e:
            raise ConfirmationTimeoutError(tx_hash, timeout) from e
        except Exception as e:
            raise NodeConnectionError(
                f"Failed to get receipt: {rpc_error_message(e)}",
                endpoint=self.endpoint,
                details={"tx_hash": tx_hash},
            ) from e


class ChainConnector:
    """Opens ChainSessions.

    Args:
        request_timeout: HTTP timeout per RPC request, in seconds
        web3_factory: Optional callable ``endpoint -> Web3`` (tests inject stubs here)
    """

    def __init__(
        self,
        request_timeout: float = PROVIDER_TIMEOUT_SECONDS,
        web3_factory: Optional[Callable[[str], Web3]] = None,
    ):
        self.request_timeout = request_timeout
        self._web3_factory = web3_factory or self._default_web3

    def _default_web3(self, endpoint: str) -> Web3:
        scheme = urlparse(endpoint).scheme
        if scheme in ("http", "https"):
            # Configure HTTPProvider with timeout so a dead node cannot hang the pipeline
            return Web3(Web3.HTTPProvider(endpoint, request_kwargs={"timeout": self.request_timeout}))
        if scheme in ("", "file") and endpoint.endswith(".ipc"):
            return Web3(Web3.IPCProvider(urlparse(endpoint).path or endpoint, timeout=self.request_timeout))
        raise NodeConnectionError(f"Unsupported endpoint: {endpoint}", endpoint=endpoint)

    def connect(self, endpoint: str) -> ChainSession:
        """Open a session and check the node answers.

        Raises:
            NodeConnectionError: If the endpoint is unsupported or unreachable
        """
        w3 = self._web3_factory(endpoint)
        try:
            connected = w3.is_connected()
        except Exception as e:
            raise NodeConnectionError(f"Failed to connect: {e}", endpoint=endpoint) from e
        if not connected:
            raise NodeConnectionError("Node is unreachable", endpoint=endpoint)
        _logger.debug("Connected to node", extra={"endpoint": endpoint})
        return ChainSession(w3, endpoint)
