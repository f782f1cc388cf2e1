"""
Shared fixtures: stub Web3 node and deterministic key.
"""

from typing import Any, Dict, List, Optional

import pytest
from eth_abi import encode as abi_encode
from eth_account import Account
from eth_utils import keccak
from web3.exceptions import TimeExhausted, TransactionNotFound

from precompile_client import (
    ChainConnector,
    ClientConfig,
    ConfirmationWaiter,
    OperationDispatcher,
)

# Private key for tests (DO NOT USE IN PRODUCTION)
TEST_PRIVATE_KEY = "0x" + "11" * 32
TEST_ADDRESS = Account.from_key(TEST_PRIVATE_KEY).address

ASSET_ID = "0xdac17f958d2ee523a2206206994597c13d831ec7"
STAKER = "0x3e108c058e8066da635321dc3018294ca82ddedf"
OPERATOR = "exo18cggcpvwspnd5c6ny8wrqxpffj5zmhklprtnph"
CHAIN_ID = 233
RPC_URL = "http://node.test:8545"

# (bool success, uint256) as returned by most precompile calls
SUCCESS_RETURN = abi_encode(["bool", "uint256"], [True, 1000])
FAILURE_RETURN = b"\x00" * 64


class StubEth:
    """Minimal ``w3.eth`` that records what the pipeline sends."""

    def __init__(self, chain_id: int = CHAIN_ID, gas_price: int = 7, nonce: int = 3):
        self.chain_id = chain_id
        self.gas_price = gas_price
        self.nonce = nonce
        self.call_result: Any = SUCCESS_RETURN
        self.send_error: Optional[Exception] = None
        self.receipt: Optional[Dict[str, Any]] = {"status": 1, "blockNumber": 42, "gasUsed": 51_000}
        self.known_tx = True
        self.calls: List[Dict[str, Any]] = []
        self.sent: List[bytes] = []
        self.nonce_requests: List[tuple] = []
        self.waits: List[tuple] = []

    def get_transaction_count(self, address, block_identifier="latest"):
        self.nonce_requests.append((address, block_identifier))
        return self.nonce

    def call(self, params):
        self.calls.append(params)
        if isinstance(self.call_result, Exception):
            raise self.call_result
        return self.call_result

    def send_raw_transaction(self, raw):
        if self.send_error is not None:
            raise self.send_error
        self.sent.append(bytes(raw))
        return keccak(bytes(raw))

    def get_transaction(self, tx_hash):
        if not self.known_tx:
            raise TransactionNotFound(f"Transaction with hash: '{tx_hash}' not found.")
        return {"hash": tx_hash}

    def wait_for_transaction_receipt(self, tx_hash, timeout=120, poll_latency=0.1):
        self.waits.append((tx_hash, timeout, poll_latency))
        if self.receipt is None:
            raise TimeExhausted(f"Transaction {tx_hash!r} is not in the chain after {timeout} seconds")
        return self.receipt


class StubWeb3:
    def __init__(self, eth: Optional[StubEth] = None, connected: bool = True):
        self.eth = eth or StubEth()
        self.connected = connected
        self.endpoints: List[str] = []

    def is_connected(self):
        return self.connected

    def factory(self, endpoint: str) -> "StubWeb3":
        self.endpoints.append(endpoint)
        return self


@pytest.fixture()
def stub_web3():
    return StubWeb3()


@pytest.fixture()
def config():
    return ClientConfig(
        rpc_url=RPC_URL,
        private_key=TEST_PRIVATE_KEY,
        default_asset_id=ASSET_ID,
        network_id=101,
    )


@pytest.fixture()
def dispatcher(config, stub_web3):
    return OperationDispatcher(
        config,
        connector=ChainConnector(web3_factory=stub_web3.factory),
        waiter=ConfirmationWaiter(timeout=5, poll_interval=1),
    )
