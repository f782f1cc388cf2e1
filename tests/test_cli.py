import os

import pytest
from click.testing import CliRunner
from eth_abi import encode as abi_encode

from conftest import ASSET_ID, OPERATOR, STAKER, TEST_PRIVATE_KEY, StubWeb3
from precompile_client import cli as cli_module
from precompile_client.cli import cli
from precompile_client.connector import ChainConnector
from precompile_client.schema import OPERATIONS

ENV_VARS = ("PRECOMPILE_PRIVATE_KEY", "PRECOMPILE_DEFAULT_ASSET_ID", "PRECOMPILE_RPC_URL")


@pytest.fixture()
def node(monkeypatch, tmp_path):
    stub = StubWeb3()
    monkeypatch.setattr(ChainConnector, "_default_web3", lambda self, endpoint: stub.factory(endpoint))
    monkeypatch.setattr(cli_module, "configure_logging", lambda *_a, **_k: None)
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    yield stub
    # --env-file writes straight into os.environ
    for name in ENV_VARS:
        os.environ.pop(name, None)


def _run(*args):
    return CliRunner().invoke(
        cli,
        ["--private-key", TEST_PRIVATE_KEY, "--default-asset-id", ASSET_ID, *args],
    )


def test_deposit_prints_transaction_id(node):
    result = _run("deposit", "--staker", STAKER, "--amount", "1000")
    assert result.exit_code == 0, result.output
    assert "Deposit Transaction ID: 0x" in result.output
    assert "Confirmed in block 42" in result.output
    assert node.eth.calls[0]["to"] == "0x0000000000000000000000000000000000000804"


def test_global_options_reach_the_pipeline(node):
    result = _run("--rpc-url", "http://other:8545", "--layer-zero-id", "40161",
                  "delegate", "--staker", STAKER, "--operator", OPERATOR, "--amount", "1")
    assert result.exit_code == 0, result.output
    assert node.endpoints == ["http://other:8545"]
    assert node.eth.calls[0]["data"].startswith("0x")


def test_failed_receipt_exits_non_zero_but_prints_tx_id(node):
    node.eth.receipt = {"status": 0, "blockNumber": 43, "gasUsed": 1}
    result = _run("undelegate", "--staker", STAKER, "--operator", OPERATOR, "--amount", "1", "--instant-unbond")
    assert result.exit_code == 1
    assert "Undelegate Transaction ID: 0x" in result.output
    assert "Transaction failed with status: 0" in result.output


def test_invalid_staker_exits_before_network(node):
    result = _run("deposit", "--staker", "0x1234", "--amount", "1")
    assert result.exit_code == 1
    assert "Transaction ID" not in result.output
    assert node.endpoints == []


def test_missing_private_key(node):
    result = CliRunner().invoke(cli, ["withdraw", "--staker", STAKER, "--amount", "1", "--asset-id", ASSET_ID])
    assert result.exit_code == 1
    assert "private key is required" in result.output


def test_abort_on_simulation_failure(node):
    node.eth.call_result = b"\x00" * 64
    result = _run("--abort-on-simulation-failure", "claim-reward", "--withdraw-address", STAKER, "--amount", "1")
    assert result.exit_code == 1
    assert node.eth.sent == []


def test_reward_options_are_parsed(node):
    result = _run(
        "distribute-reward", "--staker", STAKER,
        "--reward", "hua:10", "--reward", "aexo:5",
        "--share", f"{OPERATOR}:1:2", "--share", f"{OPERATOR}:1:2",
    )
    assert result.exit_code == 0, result.output
    assert "Distribute Reward Transaction ID" in result.output


def test_malformed_reward_is_usage_error(node):
    result = _run("compound-reward", "--staker", STAKER, "--operator", OPERATOR, "--reward", "hua")
    assert result.exit_code == 2
    assert "DENOM:AMOUNT" in result.output


@pytest.mark.parametrize("reward,share", [("hua:\u00b2", f"{OPERATOR}:1:2"), ("hua:1", f"{OPERATOR}:\u00b9:2")])
def test_non_ascii_digits_are_usage_errors(node, reward, share):
    result = _run("distribute-reward", "--staker", STAKER, "--reward", reward, "--share", share)
    assert result.exit_code == 2
    assert result.exception is None or isinstance(result.exception, SystemExit)
    assert node.endpoints == []


def test_env_file_supplies_settings(node, tmp_path):
    env_file = tmp_path / "cli.env"
    env_file.write_text(f"PRECOMPILE_PRIVATE_KEY={TEST_PRIVATE_KEY}\nPRECOMPILE_DEFAULT_ASSET_ID={ASSET_ID}\n")
    result = CliRunner().invoke(
        cli, ["--env-file", str(env_file), "self-delegate", "--staker", STAKER, "--operator", OPERATOR]
    )
    assert result.exit_code == 0, result.output
    assert "Self Delegate Transaction ID" in result.output


def test_queries(node):
    node.eth.call_result = abi_encode(["bool", "uint32[]"], [True, [101, 40161]])
    result = _run("get-client-chains")
    assert result.exit_code == 0, result.output
    assert result.output.strip() == "101 40161"

    node.eth.call_result = abi_encode(["bool", "bool"], [True, False])
    result = _run("is-registered-client-chain")
    assert result.output.strip() == "false"


def test_every_operation_has_a_command():
    commands = set(cli.commands)
    expected = {op.value for ops in OPERATIONS.values() for op in ops}
    expected |= {"self-delegate", "dissociate"}
    assert expected <= commands
