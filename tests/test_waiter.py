import pytest

from conftest import RPC_URL, StubWeb3
from precompile_client.connector import ChainConnector
from precompile_client.errors import (
    ConfirmationTimeoutError,
    NodeConnectionError,
    NotFoundError,
    TransactionFailedError,
)
from precompile_client.models import ConfirmationStatus
from precompile_client.waiter import ConfirmationWaiter

TX_HASH = "0x" + "ab" * 32


@pytest.fixture()
def node():
    return StubWeb3()


@pytest.fixture()
def session(node):
    return ChainConnector(web3_factory=node.factory).connect(RPC_URL)


@pytest.fixture()
def waiter():
    return ConfirmationWaiter(timeout=10, poll_interval=2)


def test_mined_success(waiter, session, node):
    confirmation = waiter.wait(session, TX_HASH)
    assert confirmation.status is ConfirmationStatus.MINED_SUCCESS
    assert confirmation.block_number == 42
    assert confirmation.gas_used == 51_000
    assert node.eth.waits == [(TX_HASH, 10, 2)]


def test_failure_status_raises_with_status(waiter, session, node):
    node.eth.receipt = {"status": 0, "blockNumber": 50, "gasUsed": 500_000}
    with pytest.raises(TransactionFailedError) as exc:
        waiter.wait(session, TX_HASH)
    assert exc.value.status == 0
    assert exc.value.block_number == 50
    assert exc.value.tx_hash == TX_HASH
    assert "status: 0" in exc.value.message


def test_unknown_transaction_fails_immediately(waiter, session, node):
    node.eth.known_tx = False
    with pytest.raises(NotFoundError) as exc:
        waiter.wait(session, TX_HASH)
    assert exc.value.tx_hash == TX_HASH
    assert node.eth.waits == []


def test_never_mined_times_out(session, node):
    node.eth.receipt = None
    waiter = ConfirmationWaiter(timeout=1, poll_interval=0.3)
    with pytest.raises(ConfirmationTimeoutError) as exc:
        waiter.wait(session, TX_HASH)
    assert exc.value.tx_hash == TX_HASH
    assert exc.value.timeout == 1
    assert node.eth.waits == [(TX_HASH, 1, 0.3)]


def test_per_call_timeout_overrides_default(waiter, session, node):
    node.eth.receipt = None
    with pytest.raises(ConfirmationTimeoutError) as exc:
        waiter.wait(session, TX_HASH, timeout=3)
    assert exc.value.timeout == 3
    assert node.eth.waits[0][1] == 3


def test_node_failure_while_waiting(waiter, session, node, monkeypatch):
    def _boom(tx_hash, timeout=120, poll_latency=0.1):
        raise OSError("reset by peer")

    monkeypatch.setattr(node.eth, "wait_for_transaction_receipt", _boom)
    with pytest.raises(NodeConnectionError) as exc:
        waiter.wait(session, TX_HASH)
    assert exc.value.details["tx_hash"] == TX_HASH


def test_receipt_objects_with_attributes(waiter, session, node):
    class Receipt:
        status = 1
        blockNumber = 77
        gasUsed = 10

    node.eth.receipt = Receipt()
    assert waiter.wait(session, TX_HASH).block_number == 77