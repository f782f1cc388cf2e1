"""Command line entry point: one subcommand per precompile operation."""

import logging
from typing import Any, Callable, Dict, Optional, Tuple

import click

from .config import ClientConfig, load_config
from .dispatcher import OperationDispatcher
from .errors import PrecompileError
from .models import DecCoin, OperatorShare, SimulationPolicy, SubmissionResult
from .utils.logging import configure_logging
from .version import __version__


class AppContext:
    """Lazily builds the dispatcher from global options."""

    def __init__(self, overrides: Dict[str, Any], env_file: Optional[str]) -> None:
        self._overrides = overrides
        self._env_file = env_file
        self._dispatcher: Optional[OperationDispatcher] = None

    @property
    def config(self) -> ClientConfig:
        return self.dispatcher.config

    @property
    def dispatcher(self) -> OperationDispatcher:
        if self._dispatcher is None:
            self._dispatcher = OperationDispatcher(load_config(self._env_file, **self._overrides))
        return self._dispatcher


def _run(ctx: click.Context, label: str, action: Callable[[OperationDispatcher], SubmissionResult]) -> None:
    """Run one operation, print its transaction id and map errors to exit status 1."""
    app: AppContext = ctx.obj
    try:
        result = action(app.dispatcher)
    except PrecompileError as e:
        if e.tx_hash:
            click.echo(f"{label} Transaction ID: {e.tx_hash}")
        raise click.ClickException(f"Failed to {label.lower()}: {e}") from e
    click.echo(f"{label} Transaction ID: {result.tx_hash}")
    click.echo(f"Confirmed in block {result.block_number}")


def _parse_coin(value: str) -> DecCoin:
    denom, sep, amount = value.partition(":")
    if not sep or not denom or not (amount.isascii() and amount.isdigit()):
        raise click.BadParameter(f"expected DENOM:AMOUNT, got {value!r}")
    return DecCoin(denom=denom, amount=int(amount))


def _parse_share(value: str) -> OperatorShare:
    parts = value.split(":")
    if len(parts) != 3 or not all(p.isascii() and p.isdigit() for p in parts[1:]):
        raise click.BadParameter(f"expected OPERATOR:NUMERATOR:DENOMINATOR, got {value!r}")
    return OperatorShare(operator=parts[0], numerator=int(parts[1]), denominator=int(parts[2]))


staker_option = click.option("--staker", required=True, help="Staker address (20-byte hex or 32-byte hex).")
amount_option = click.option("--amount", required=True, help="Amount in base units (decimal).")
operator_option = click.option("--operator", required=True, help="Operator bech32 address.")
asset_option = click.option("--asset-id", default=None, help="Asset id (defaults to --default-asset-id).")


@click.group()
@click.version_option(version=__version__, prog_name="precompile-cli")
@click.option("--rpc-url", default=None, help="Node RPC URL [default: http://localhost:8545].")
@click.option("--private-key", default=None, help="Private key for transactions.")
@click.option("--default-asset-id", default=None, help="Default asset ID.")
@click.option("--layer-zero-id", "network_id", type=int, default=None, help="LayerZero ID of the client chain [default: 101].")
@click.option("--gas-limit", type=int, default=None, help="Gas limit per transaction [default: 500000].")
@click.option("--timeout", "confirmation_timeout", type=float, default=None,
              help="Seconds to wait for the transaction to be mined [default: 300].")
@click.option("--abort-on-simulation-failure", is_flag=True, help="Do not broadcast when the preflight call fails.")
@click.option("--env-file", default=None, type=click.Path(dir_okay=False), help="Load settings from a dotenv file.")
@click.option("-v", "--verbose", is_flag=True, help="Debug logging.")
@click.pass_context
def cli(
    ctx: click.Context,
    rpc_url: Optional[str],
    private_key: Optional[str],
    default_asset_id: Optional[str],
    network_id: Optional[int],
    gas_limit: Optional[int],
    confirmation_timeout: Optional[float],
    abort_on_simulation_failure: bool,
    env_file: Optional[str],
    verbose: bool,
) -> None:
    """Call asset, delegation and reward precompiles."""
    configure_logging(logging.DEBUG if verbose else logging.INFO)
    ctx.obj = AppContext(
        {
            "rpc_url": rpc_url,
            "private_key": private_key,
            "default_asset_id": default_asset_id,
            "network_id": network_id,
            "gas_limit": gas_limit,
            "confirmation_timeout": confirmation_timeout,
            "simulation_policy": SimulationPolicy.ABORT if abort_on_simulation_failure else None,
        },
        env_file,
    )


# ----------------------------------------------------------------------
# Asset
# ----------------------------------------------------------------------
@cli.command()
@staker_option
@amount_option
@asset_option
@click.pass_context
def deposit(ctx: click.Context, staker: str, amount: str, asset_id: Optional[str]) -> None:
    """Deposit to the asset precompile."""
    _run(ctx, "Deposit", lambda d: d.deposit(staker, amount, asset_id))


@cli.command("deposit-nst")
@click.option("--validator-id", required=True, help="Validator id (hex).")
@staker_option
@amount_option
@click.pass_context
def deposit_nst(ctx: click.Context, validator_id: str, staker: str, amount: str) -> None:
    """Deposit native stake for a validator."""
    _run(ctx, "Deposit NST", lambda d: d.deposit_nst(validator_id, staker, amount))


@cli.command()
@staker_option
@amount_option
@asset_option
@click.pass_context
def withdraw(ctx: click.Context, staker: str, amount: str, asset_id: Optional[str]) -> None:
    """Withdraw liquid staking tokens."""
    _run(ctx, "Withdraw", lambda d: d.withdraw(staker, amount, asset_id))


@cli.command("withdraw-nst")
@click.option("--validator-id", required=True, help="Validator id (hex).")
@staker_option
@amount_option
@click.pass_context
def withdraw_nst(ctx: click.Context, validator_id: str, staker: str, amount: str) -> None:
    """Withdraw native stake."""
    _run(ctx, "Withdraw NST", lambda d: d.withdraw_nst(validator_id, staker, amount))


@cli.command("register-client-chain")
@click.option("--address-length", type=int, default=20, show_default=True)
@click.option("--name", required=True)
@click.option("--meta-info", default="", show_default=True)
@click.option("--signature-type", default="secp256k1", show_default=True)
@click.pass_context
def register_client_chain(ctx: click.Context, address_length: int, name: str, meta_info: str, signature_type: str) -> None:
    """Register or update the client chain given by --layer-zero-id."""
    _run(ctx, "Register Client Chain",
         lambda d: d.register_client_chain(address_length, name, meta_info, signature_type))


@cli.command("register-token")
@click.option("--token", required=True, help="Token address on the client chain.")
@click.option("--decimals", type=int, required=True)
@click.option("--name", required=True)
@click.option("--meta-data", default="")
@click.option("--oracle-info", default="")
@click.pass_context
def register_token(ctx: click.Context, token: str, decimals: int, name: str, meta_data: str, oracle_info: str) -> None:
    """Register a token of the client chain."""
    _run(ctx, "Register Token", lambda d: d.register_token(token, decimals, name, meta_data, oracle_info))


@cli.command("update-token")
@click.option("--token", required=True, help="Token address on the client chain.")
@click.option("--meta-data", required=True)
@click.pass_context
def update_token(ctx: click.Context, token: str, meta_data: str) -> None:
    """Update token metadata."""
    _run(ctx, "Update Token", lambda d: d.update_token(token, meta_data))


@cli.command("get-client-chains")
@click.pass_context
def get_client_chains(ctx: click.Context) -> None:
    """List registered client chain ids."""
    try:
        chains = ctx.obj.dispatcher.get_client_chains()
    except PrecompileError as e:
        raise click.ClickException(str(e)) from e
    click.echo(" ".join(str(c) for c in chains))


@cli.command("is-registered-client-chain")
@click.pass_context
def is_registered_client_chain(ctx: click.Context) -> None:
    """Check whether --layer-zero-id is a registered client chain."""
    try:
        registered = ctx.obj.dispatcher.is_registered_client_chain()
    except PrecompileError as e:
        raise click.ClickException(str(e)) from e
    click.echo("true" if registered else "false")


# ----------------------------------------------------------------------
# Delegation
# ----------------------------------------------------------------------
@cli.command()
@staker_option
@operator_option
@amount_option
@asset_option
@click.pass_context
def delegate(ctx: click.Context, staker: str, operator: str, amount: str, asset_id: Optional[str]) -> None:
    """Delegate to an operator."""
    _run(ctx, "Delegate", lambda d: d.delegate(staker, operator, amount, asset_id))


@cli.command()
@staker_option
@operator_option
@amount_option
@asset_option
@click.option("--instant-unbond", is_flag=True, help="Skip the unbonding period.")
@click.pass_context
def undelegate(ctx: click.Context, staker: str, operator: str, amount: str, asset_id: Optional[str],
               instant_unbond: bool) -> None:
    """Undelegate from an operator."""
    _run(ctx, "Undelegate",
         lambda d: d.undelegate(staker, operator, amount, asset_id, instant_unbond=instant_unbond))


@cli.command("self-delegate")
@staker_option
@operator_option
@click.pass_context
def self_delegate(ctx: click.Context, staker: str, operator: str) -> None:
    """Associate the staker with an operator."""
    _run(ctx, "Self Delegate", lambda d: d.associate_operator(staker, operator))


@cli.command("dissociate")
@staker_option
@click.pass_context
def dissociate(ctx: click.Context, staker: str) -> None:
    """Remove the staker's operator association."""
    _run(ctx, "Dissociate", lambda d: d.dissociate_operator(staker))


# ----------------------------------------------------------------------
# Reward
# ----------------------------------------------------------------------
@cli.command("claim-reward")
@click.option("--withdraw-address", required=True)
@amount_option
@asset_option
@click.pass_context
def claim_reward(ctx: click.Context, withdraw_address: str, amount: str, asset_id: Optional[str]) -> None:
    """Claim rewards to a client chain address."""
    _run(ctx, "Claim Reward", lambda d: d.claim_reward(withdraw_address, amount, asset_id))


@cli.command("compound-reward")
@staker_option
@operator_option
@click.option("--reward", "rewards", multiple=True, required=True, help="DENOM:AMOUNT, repeatable.")
@click.pass_context
def compound_reward(ctx: click.Context, staker: str, operator: str, rewards: Tuple[str, ...]) -> None:
    """Re-delegate accrued rewards to an operator."""
    coins = [_parse_coin(r) for r in rewards]
    _run(ctx, "Compound Reward", lambda d: d.compound_reward(staker, operator, coins))


@cli.command("distribute-reward")
@staker_option
@click.option("--reward", "rewards", multiple=True, required=True, help="DENOM:AMOUNT, repeatable.")
@click.option("--share", "shares", multiple=True, required=True,
              help="OPERATOR:NUMERATOR:DENOMINATOR, repeatable.")
@click.pass_context
def distribute_reward(ctx: click.Context, staker: str, rewards: Tuple[str, ...], shares: Tuple[str, ...]) -> None:
    """Split rewards across operators."""
    coins = [_parse_coin(r) for r in rewards]
    operator_shares = [_parse_share(s) for s in shares]
    _run(ctx, "Distribute Reward", lambda d: d.distribute_reward(staker, coins, operator_shares))


# Operation names of the delegation schema
cli.add_command(self_delegate, "associate-operator")
cli.add_command(dissociate, "dissociate-operator")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
