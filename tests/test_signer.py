import pytest
from eth_abi import encode as abi_encode
from eth_account import Account

from conftest import CHAIN_ID, FAILURE_RETURN, RPC_URL, SUCCESS_RETURN, TEST_ADDRESS, TEST_PRIVATE_KEY, StubWeb3
from precompile_client.connector import ChainConnector
from precompile_client.errors import InputEncodingError, SignatureError, SimulationFailedError
from precompile_client.models import Domain, EncodedCall, SimulationPolicy, SimulationResult
from precompile_client.schema import AssetOperation, SchemaRegistry
from precompile_client.signer import TransactionSigner, load_account

CALL_DATA = b"\xaa\xbb\xcc\xdd" + b"\x00" * 32


@pytest.fixture()
def account():
    return load_account(TEST_PRIVATE_KEY)


@pytest.fixture()
def deposit():
    return SchemaRegistry.default().resolve(Domain.ASSET, AssetOperation.DEPOSIT)


@pytest.fixture()
def call(deposit):
    return EncodedCall(deposit.destination, CALL_DATA, deposit.name, deposit.entry.function_name)


def test_load_account_requires_key():
    with pytest.raises(InputEncodingError):
        load_account(None)


def test_load_account_does_not_echo_key():
    bad_key = "0xnot-a-key-1234"
    with pytest.raises(InputEncodingError) as exc:
        load_account(bad_key)
    assert bad_key not in str(exc.value)
    assert exc.value.__cause__ is None


def test_gas_limit_bounds():
    with pytest.raises(InputEncodingError):
        TransactionSigner(gas_limit=0)
    with pytest.raises(InputEncodingError):
        TransactionSigner(gas_limit=10_000_001)


def test_build_legacy_envelope(call):
    envelope = TransactionSigner().build(nonce=9, call=call, gas_price=5)
    assert envelope == {
        "nonce": 9,
        "to": "0x0000000000000000000000000000000000000804",
        "value": 0,
        "gas": 500_000,
        "gasPrice": 5,
        "data": "0x" + CALL_DATA.hex(),
    }


def test_sign_binds_chain_id(account, call):
    signer = TransactionSigner()
    envelope = signer.build(nonce=0, call=call, gas_price=1)
    signed = signer.sign(envelope, account, CHAIN_ID)
    other = signer.sign(envelope, account, CHAIN_ID + 1)

    assert signed.chain_id == CHAIN_ID
    assert signed.sender == TEST_ADDRESS
    assert Account.recover_transaction(signed.raw_transaction) == TEST_ADDRESS
    assert signed.tx_hash != other.tx_hash
    assert signed.data == CALL_DATA
    assert signed.value == 0
    assert signed.gas_limit == 500_000


def test_sign_rejects_envelope_for_other_chain(account, call):
    signer = TransactionSigner()
    envelope = {**signer.build(nonce=0, call=call, gas_price=1), "chainId": 1}
    with pytest.raises(SignatureError):
        signer.sign(envelope, account, CHAIN_ID)


def _session(stub):
    return ChainConnector(web3_factory=stub.factory).connect(RPC_URL)


def test_preflight_decodes_success(account, call, deposit):
    stub = StubWeb3()
    signer = TransactionSigner()
    signed = signer.sign(signer.build(0, call, 1), account, CHAIN_ID)
    result = signer.preflight(_session(stub), call, signed, deposit.entry)
    assert result.raw == SUCCESS_RETURN
    assert result.decoded == (True, 1000)


def test_preflight_warns_and_continues_by_default(account, call, caplog):
    stub = StubWeb3()
    stub.eth.call_result = FAILURE_RETURN
    signer = TransactionSigner()
    signed = signer.sign(signer.build(0, call, 1), account, CHAIN_ID)
    with caplog.at_level("WARNING", logger="precompile_client"):
        result = signer.preflight(_session(stub), call, signed)
    assert result.would_fail
    assert "broadcasting anyway" in caplog.text


def test_false_success_flag_with_nonzero_payload_would_fail(account, call, deposit, caplog):
    stub = StubWeb3()
    stub.eth.call_result = abi_encode(["bool", "uint256"], [False, 1000])
    signer = TransactionSigner()
    signed = signer.sign(signer.build(0, call, 1), account, CHAIN_ID)
    with caplog.at_level("WARNING", logger="precompile_client"):
        result = signer.preflight(_session(stub), call, signed, deposit.entry)
    assert result.decoded == (False, 1000)
    assert result.would_fail
    assert "broadcasting anyway" in caplog.text


def test_decoded_values_without_success_flag_are_not_judged():
    result = SimulationResult(raw=abi_encode(["bool"], [False]) + b"\x01", decoded=(False,))
    assert not result.would_fail


def test_preflight_aborts_under_abort_policy(account, call):
    stub = StubWeb3()
    stub.eth.call_result = ValueError({"message": "execution reverted"})
    signer = TransactionSigner(simulation_policy=SimulationPolicy.ABORT)
    signed = signer.sign(signer.build(0, call, 1), account, CHAIN_ID)
    with pytest.raises(SimulationFailedError) as exc:
        signer.preflight(_session(stub), call, signed)
    assert exc.value.tx_hash == signed.tx_hash
    assert "execution reverted" in exc.value.message


def test_broadcast_returns_hash_of_raw_transaction(account, call):
    stub = StubWeb3()
    signer = TransactionSigner()
    signed = signer.sign(signer.build(0, call, 1), account, CHAIN_ID)
    assert signer.broadcast(_session(stub), signed) == signed.tx_hash
    assert stub.eth.sent == [signed.raw_transaction]
