"""Operation dispatcher.

Drives one invocation through the pipeline, strictly in order:

    encode arguments -> connect, chain id, nonce, gas price
    -> build, sign -> simulate -> broadcast -> wait for receipt

Nothing is retried. The first failure aborts the run and is re-raised
with the operation, destination and (when one exists) transaction hash
attached, so a broadcast transaction is never lost.

Example:
    >>> dispatcher = OperationDispatcher(ClientConfig(private_key="0x...", default_asset_id="0x..."))
    >>> result = dispatcher.deposit(staker="0x3e10...dedf", amount="1000")
    >>> result.tx_hash
    '0x5f1c...'
"""
import functools
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from .codec import parse_amount
from .config import ClientConfig
from .connector import ChainConnector
from .encoder import decode_output, encode_call
from .errors import (
    ConfirmationTimeoutError,
    InputEncodingError,
    PipelineStateError,
    PrecompileError,
    SimulationFailedError,
    TransactionFailedError,
    UnsupportedOperationError,
)
from .models import (
    ConfirmationStatus,
    DecCoin,
    Domain,
    OperatorShare,
    PipelineState,
    SubmissionResult,
)
from .schema import (
    AssetOperation,
    DelegationOperation,
    OperationDescriptor,
    RewardOperation,
    SchemaRegistry,
)
from .signer import TransactionSigner, load_account
from .utils.logging import get_logger
from .waiter import ConfirmationWaiter

__all__ = ["OperationDispatcher", "PipelineRun", "invoke"]

_logger = get_logger(__name__)

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


class PipelineRun:
    """State of a single invocation. Terminal states are never left."""

    ALLOWED_TRANSITIONS = {
        PipelineState.IDLE: {PipelineState.ARGUMENTS_ENCODED, PipelineState.FAILED},
        PipelineState.ARGUMENTS_ENCODED: {PipelineState.CONNECTED, PipelineState.FAILED},
        PipelineState.CONNECTED: {PipelineState.SIGNED, PipelineState.FAILED},
        PipelineState.SIGNED: {PipelineState.BROADCAST, PipelineState.FAILED},
        PipelineState.BROADCAST: {PipelineState.CONFIRMED, PipelineState.FAILED, PipelineState.TIMED_OUT},
        PipelineState.CONFIRMED: set(),
        PipelineState.FAILED: set(),
        PipelineState.TIMED_OUT: set(),
    }

    def __init__(self, descriptor: OperationDescriptor):
        self.descriptor = descriptor
        self.state = PipelineState.IDLE
        self.history: List[PipelineState] = [PipelineState.IDLE]

    @property
    def terminal(self) -> bool:
        return not self.ALLOWED_TRANSITIONS[self.state]

    def advance(self, target: PipelineState) -> None:
        if target not in self.ALLOWED_TRANSITIONS[self.state]:
            raise PipelineStateError(self.state, target)
        self.state = target
        self.history.append(target)
        _logger.debug("Pipeline state", extra={"operation": self.descriptor.name, "state": target.value})


def _confirmation_status(error: PrecompileError, run: PipelineRun) -> Optional[ConfirmationStatus]:
    """Where the broadcast transaction stood when the run stopped; None if nothing was broadcast."""
    if isinstance(error, TransactionFailedError):
        return ConfirmationStatus.MINED_FAILURE
    if isinstance(error, ConfirmationTimeoutError):
        return ConfirmationStatus.TIMED_OUT
    if PipelineState.BROADCAST in run.history:
        return ConfirmationStatus.PENDING
    return None


def _operation(domain: Domain, operation: Enum) -> Callable:
    """Attach domain/operation context to errors raised while building arguments."""
    def decorator(fn: Callable) -> Callable:
        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                return fn(*args, **kwargs)
            except PrecompileError as e:
                raise e.with_context(domain=domain.value, operation=str(operation))
        return wrapper
    return decorator


class OperationDispatcher:
    """Resolve operations against the schema registry and run the pipeline.

    Args:
        config: Client configuration (validated on construction)
        registry: Schema registry; loaded from ``config.schema_versions`` if omitted
        connector: Chain connector; built from ``config.request_timeout`` if omitted
        signer: Transaction signer; built from gas limit and simulation policy if omitted
        waiter: Confirmation waiter; built from timeout and poll interval if omitted
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        registry: Optional[SchemaRegistry] = None,
        connector: Optional[ChainConnector] = None,
        signer: Optional[TransactionSigner] = None,
        waiter: Optional[ConfirmationWaiter] = None,
    ):
        self.config = (config or ClientConfig()).validate()
        self.registry = registry or SchemaRegistry.default(self.config.schema_versions)
        self.connector = connector or ChainConnector(self.config.request_timeout)
        self.signer = signer or TransactionSigner(self.config.gas_limit, self.config.simulation_policy)
        self.waiter = waiter or ConfirmationWaiter(self.config.confirmation_timeout, self.config.poll_interval)

    def resolve(self, domain: Union[Domain, str], operation: Union[Enum, str]) -> OperationDescriptor:
        return self.registry.resolve(domain, operation)

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------
    def invoke(
        self,
        domain: Union[Domain, str],
        operation: Union[Enum, str],
        arguments: Union[Mapping[str, Any], Sequence[Any]],
        *,
        endpoint: Optional[str] = None,
        private_key: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> SubmissionResult:
        """Encode, sign, broadcast and confirm one state-changing operation.

        Args:
            domain: Functional domain (asset, delegation, reward)
            operation: Operation of that domain
            arguments: Named (by ABI parameter) or positional call arguments.
                Identifier, operator and hex blob parameters are canonicalized
                by the encoder, so hex strings and raw bytes are both accepted.
            endpoint: Node URL (defaults to ``config.rpc_url``)
            private_key: Signing key (defaults to ``config.private_key``)
            timeout: Confirmation deadline in seconds (defaults to config)

        Returns:
            SubmissionResult with status MINED_SUCCESS

        Raises:
            PrecompileError: Any pipeline failure, with context attached
        """
        descriptor = self.resolve(domain, operation)
        if descriptor.entry.read_only:
            raise UnsupportedOperationError(descriptor.domain, f"{descriptor.name} (read-only, use query)")

        endpoint = endpoint or self.config.rpc_url
        run = PipelineRun(descriptor)
        tx_hash: Optional[str] = None
        try:
            # Validate and encode before touching the network
            account = load_account(private_key or self.config.private_key)
            call = encode_call(descriptor, arguments)
            run.advance(PipelineState.ARGUMENTS_ENCODED)
            _logger.info(
                "Encoded operation",
                extra={"operation": descriptor.name, "destination": descriptor.destination,
                       "schema": descriptor.schema_version},
            )

            session = self.connector.connect(endpoint)
            chain_id = session.chain_id()
            nonce = session.nonce(account.address)
            gas_price = session.suggested_gas_price()
            run.advance(PipelineState.CONNECTED)

            envelope = self.signer.build(nonce, call, gas_price)
            signed = self.signer.sign(envelope, account, chain_id)
            tx_hash = signed.tx_hash
            run.advance(PipelineState.SIGNED)

            simulation = self.signer.preflight(session, call, signed, descriptor.entry)
            tx_hash = self.signer.broadcast(session, signed)
            run.advance(PipelineState.BROADCAST)
            _logger.info("Transaction ID", extra={"operation": descriptor.name, "tx_hash": tx_hash})

            confirmation = self.waiter.wait(session, tx_hash, timeout)
            run.advance(PipelineState.CONFIRMED)
        except ConfirmationTimeoutError as e:
            run.advance(PipelineState.TIMED_OUT)
            raise self._context(e, descriptor, tx_hash, run)
        except PrecompileError as e:
            if not run.terminal:
                run.advance(PipelineState.FAILED)
            raise self._context(e, descriptor, tx_hash, run)

        return SubmissionResult(
            tx_hash=tx_hash,
            operation=descriptor.name,
            destination=descriptor.destination,
            status=confirmation.status,
            simulation=simulation,
            block_number=confirmation.block_number,
            gas_used=confirmation.gas_used,
            states=list(run.history),
        )

    def query(
        self,
        domain: Union[Domain, str],
        operation: Union[Enum, str],
        arguments: Union[Mapping[str, Any], Sequence[Any]] = (),
        *,
        endpoint: Optional[str] = None,
    ) -> Tuple[Any, ...]:
        """Run a read-only operation through ``eth_call`` and decode its outputs.

        Raises:
            SimulationFailedError: If the call fails on the node
        """
        descriptor = self.resolve(domain, operation)
        call = encode_call(descriptor, arguments)
        session = self.connector.connect(endpoint or self.config.rpc_url)
        sender = load_account(self.config.private_key).address if self.config.private_key else ZERO_ADDRESS
        result = session.simulate(call, sender)
        if result.raw is None:
            raise SimulationFailedError(
                f"Query failed: {result.error}",
                details={"operation": descriptor.name, "destination": descriptor.destination},
            )
        return decode_output(descriptor.entry, result.raw)

    @staticmethod
    def _context(
        error: PrecompileError,
        descriptor: OperationDescriptor,
        tx_hash: Optional[str],
        run: PipelineRun,
    ) -> PrecompileError:
        _logger.error(
            "Operation failed",
            extra={"operation": descriptor.name, "state": run.state.value, "error": error.code,
                   "tx_hash": tx_hash or error.tx_hash},
        )
        status = _confirmation_status(error, run)
        return error.with_context(
            operation=descriptor.name,
            domain=descriptor.domain.value,
            destination=descriptor.destination,
            tx_hash=tx_hash,
            state=run.state.value,
            confirmation_status=status.value if status else None,
        )

    # ------------------------------------------------------------------
    # Argument helpers
    # ------------------------------------------------------------------
    def _chain_id_arg(self, client_chain_id: Optional[int]) -> int:
        return self.config.network_id if client_chain_id is None else client_chain_id

    def _asset(self, asset_id: Optional[str]) -> str:
        asset_id = asset_id or self.config.default_asset_id
        if not asset_id:
            raise InputEncodingError("default asset id is not configured", field="default_asset_id")
        return asset_id

    def _entry_params(self, domain: Domain, operation: Enum) -> Tuple[str, ...]:
        return self.registry.resolve(domain, operation).entry.input_names

    # ------------------------------------------------------------------
    # Asset operations
    # ------------------------------------------------------------------
    @_operation(Domain.ASSET, AssetOperation.DEPOSIT)
    def deposit(self, staker: str, amount: Union[str, int], asset_id: Optional[str] = None, **kwargs: Any) -> SubmissionResult:
        """Deposit ``amount`` of the (default) asset for ``staker``."""
        arguments = {
            "clientChainID": self._chain_id_arg(kwargs.pop("client_chain_id", None)),
            "assetsAddress": self._asset(asset_id),
            "stakerAddress": staker,
            "opAmount": parse_amount(amount),
        }
        return self.invoke(Domain.ASSET, AssetOperation.DEPOSIT, arguments, **kwargs)

    @_operation(Domain.ASSET, AssetOperation.DEPOSIT_NST)
    def deposit_nst(self, validator_id: str, staker: str, amount: Union[str, int], **kwargs: Any) -> SubmissionResult:
        """Deposit native (beacon chain) stake identified by ``validator_id``."""
        arguments = {
            "clientChainID": self._chain_id_arg(kwargs.pop("client_chain_id", None)),
            "validatorID": validator_id,
            "stakerAddress": staker,
            "opAmount": parse_amount(amount),
        }
        return self.invoke(Domain.ASSET, AssetOperation.DEPOSIT_NST, arguments, **kwargs)

    @_operation(Domain.ASSET, AssetOperation.WITHDRAW)
    def withdraw(self, staker: str, amount: Union[str, int], asset_id: Optional[str] = None, **kwargs: Any) -> SubmissionResult:
        arguments = {
            "clientChainID": self._chain_id_arg(kwargs.pop("client_chain_id", None)),
            "assetsAddress": self._asset(asset_id),
            "withdrawAddress": staker,
            "opAmount": parse_amount(amount),
        }
        return self.invoke(Domain.ASSET, AssetOperation.WITHDRAW, arguments, **kwargs)

    @_operation(Domain.ASSET, AssetOperation.WITHDRAW_NST)
    def withdraw_nst(self, validator_id: str, staker: str, amount: Union[str, int], **kwargs: Any) -> SubmissionResult:
        arguments = {
            "clientChainID": self._chain_id_arg(kwargs.pop("client_chain_id", None)),
            "validatorID": validator_id,
            "withdrawAddress": staker,
            "opAmount": parse_amount(amount),
        }
        return self.invoke(Domain.ASSET, AssetOperation.WITHDRAW_NST, arguments, **kwargs)

    @_operation(Domain.ASSET, AssetOperation.REGISTER_CLIENT_CHAIN)
    def register_client_chain(
        self,
        address_length: int,
        name: str,
        meta_info: str,
        signature_type: str,
        **kwargs: Any,
    ) -> SubmissionResult:
        """Register the client chain ``network_id`` (or update it if it exists)."""
        arguments = {
            "clientChainID": self._chain_id_arg(kwargs.pop("client_chain_id", None)),
            "addressLength": address_length,
            "name": name,
            "metaInfo": meta_info,
            "signatureType": signature_type,
        }
        return self.invoke(Domain.ASSET, AssetOperation.REGISTER_CLIENT_CHAIN, arguments, **kwargs)

    @_operation(Domain.ASSET, AssetOperation.REGISTER_TOKEN)
    def register_token(
        self,
        token: str,
        decimals: int,
        name: str,
        meta_data: str = "",
        oracle_info: str = "",
        **kwargs: Any,
    ) -> SubmissionResult:
        arguments = {
            "clientChainID": self._chain_id_arg(kwargs.pop("client_chain_id", None)),
            "token": token,
            "decimals": decimals,
            "name": name,
            "metaData": meta_data,
            "oracleInfo": oracle_info,
        }
        return self.invoke(Domain.ASSET, AssetOperation.REGISTER_TOKEN, arguments, **kwargs)

    @_operation(Domain.ASSET, AssetOperation.UPDATE_TOKEN)
    def update_token(self, token: str, meta_data: str, **kwargs: Any) -> SubmissionResult:
        arguments = {
            "clientChainID": self._chain_id_arg(kwargs.pop("client_chain_id", None)),
            "token": token,
            "metaData": meta_data,
        }
        return self.invoke(Domain.ASSET, AssetOperation.UPDATE_TOKEN, arguments, **kwargs)

    def get_client_chains(self, endpoint: Optional[str] = None) -> List[int]:
        """Ids of all registered client chains."""
        success, chains = self.query(Domain.ASSET, AssetOperation.GET_CLIENT_CHAINS, endpoint=endpoint)
        if not success:
            raise SimulationFailedError("getClientChains reported failure",
                                        details={"operation": str(AssetOperation.GET_CLIENT_CHAINS)})
        return list(chains)

    def is_registered_client_chain(self, client_chain_id: Optional[int] = None, endpoint: Optional[str] = None) -> bool:
        success, registered = self.query(
            Domain.ASSET,
            AssetOperation.IS_REGISTERED_CLIENT_CHAIN,
            {"clientChainID": self._chain_id_arg(client_chain_id)},
            endpoint=endpoint,
        )
        if not success:
            raise SimulationFailedError("isRegisteredClientChain reported failure",
                                        details={"operation": str(AssetOperation.IS_REGISTERED_CLIENT_CHAIN)})
        return bool(registered)

    # ------------------------------------------------------------------
    # Delegation operations
    # ------------------------------------------------------------------
    @_operation(Domain.DELEGATION, DelegationOperation.DELEGATE)
    def delegate(
        self,
        staker: str,
        operator: str,
        amount: Union[str, int],
        asset_id: Optional[str] = None,
        **kwargs: Any,
    ) -> SubmissionResult:
        """Delegate ``amount`` of the staker's asset to a bech32 ``operator``."""
        arguments = {
            "clientChainID": self._chain_id_arg(kwargs.pop("client_chain_id", None)),
            "assetsAddress": self._asset(asset_id),
            "stakerAddress": staker,
            "operatorAddr": operator,
            "opAmount": parse_amount(amount),
        }
        return self.invoke(Domain.DELEGATION, DelegationOperation.DELEGATE, arguments, **kwargs)

    @_operation(Domain.DELEGATION, DelegationOperation.UNDELEGATE)
    def undelegate(
        self,
        staker: str,
        operator: str,
        amount: Union[str, int],
        asset_id: Optional[str] = None,
        instant_unbond: bool = False,
        **kwargs: Any,
    ) -> SubmissionResult:
        """Undelegate ``amount`` from ``operator``; ``instant_unbond`` skips the unbonding period."""
        arguments: Dict[str, Any] = {
            "clientChainID": self._chain_id_arg(kwargs.pop("client_chain_id", None)),
            "assetsAddress": self._asset(asset_id),
            "stakerAddress": staker,
            "operatorAddr": operator,
            "opAmount": parse_amount(amount),
        }
        if "instantUnbond" in self._entry_params(Domain.DELEGATION, DelegationOperation.UNDELEGATE):
            arguments["instantUnbond"] = bool(instant_unbond)
        elif instant_unbond:
            raise InputEncodingError(
                "instant unbond is not supported by the active delegation schema",
                field="instant_unbond",
            )
        return self.invoke(Domain.DELEGATION, DelegationOperation.UNDELEGATE, arguments, **kwargs)

    @_operation(Domain.DELEGATION, DelegationOperation.ASSOCIATE_OPERATOR)
    def associate_operator(self, staker: str, operator: str, **kwargs: Any) -> SubmissionResult:
        """Mark ``staker`` as self-delegating through ``operator``. The staker is sent unpadded."""
        arguments = {
            "clientChainID": self._chain_id_arg(kwargs.pop("client_chain_id", None)),
            "staker": staker,
            "operator": operator,
        }
        return self.invoke(Domain.DELEGATION, DelegationOperation.ASSOCIATE_OPERATOR, arguments, **kwargs)

    @_operation(Domain.DELEGATION, DelegationOperation.DISSOCIATE_OPERATOR)
    def dissociate_operator(self, staker: str, **kwargs: Any) -> SubmissionResult:
        arguments = {
            "clientChainID": self._chain_id_arg(kwargs.pop("client_chain_id", None)),
            "staker": staker,
        }
        return self.invoke(Domain.DELEGATION, DelegationOperation.DISSOCIATE_OPERATOR, arguments, **kwargs)

    # ------------------------------------------------------------------
    # Reward operations
    # ------------------------------------------------------------------
    @_operation(Domain.REWARD, RewardOperation.CLAIM_REWARD)
    def claim_reward(
        self,
        withdraw_address: str,
        amount: Union[str, int],
        asset_id: Optional[str] = None,
        **kwargs: Any,
    ) -> SubmissionResult:
        arguments = {
            "clientChainID": self._chain_id_arg(kwargs.pop("client_chain_id", None)),
            "assetsAddress": self._asset(asset_id),
            "withdrawRewardAddress": withdraw_address,
            "opAmount": parse_amount(amount),
        }
        return self.invoke(Domain.REWARD, RewardOperation.CLAIM_REWARD, arguments, **kwargs)

    @_operation(Domain.REWARD, RewardOperation.COMPOUND_REWARD)
    def compound_reward(self, staker: str, operator: str, rewards: Iterable[DecCoin], **kwargs: Any) -> SubmissionResult:
        """Re-delegate accrued ``rewards`` of ``staker`` to ``operator``."""
        arguments = {
            "clientChainID": self._chain_id_arg(kwargs.pop("client_chain_id", None)),
            "stakerAddress": staker,
            "operatorAddr": operator,
            "rewards": _coins(rewards),
        }
        return self.invoke(Domain.REWARD, RewardOperation.COMPOUND_REWARD, arguments, **kwargs)

    @_operation(Domain.REWARD, RewardOperation.DISTRIBUTE_REWARD)
    def distribute_reward(
        self,
        staker: str,
        rewards: Iterable[DecCoin],
        shares: Iterable[OperatorShare],
        **kwargs: Any,
    ) -> SubmissionResult:
        """Split ``rewards`` of ``staker`` across operators by fractional ``shares``."""
        arguments = {
            "clientChainID": self._chain_id_arg(kwargs.pop("client_chain_id", None)),
            "stakerAddress": staker,
            "rewards": _coins(rewards),
            "shares": _shares(shares),
        }
        return self.invoke(Domain.REWARD, RewardOperation.DISTRIBUTE_REWARD, arguments, **kwargs)


def _coins(rewards: Iterable[DecCoin]) -> List[Dict[str, Any]]:
    coins = []
    for i, coin in enumerate(rewards):
        if not coin.denom:
            raise InputEncodingError("denom must be non-empty", field=f"rewards[{i}].denom")
        coins.append({"denom": coin.denom, "amount": parse_amount(coin.amount, f"rewards[{i}].amount")})
    if not coins:
        raise InputEncodingError("at least one reward coin is required", field="rewards")
    return coins


def _shares(shares: Iterable[OperatorShare]) -> List[Dict[str, Any]]:
    encoded = []
    for i, share in enumerate(shares):
        if share.denominator <= 0:
            raise InputEncodingError("denominator must be positive", field=f"shares[{i}].denominator")
        if not 0 <= share.numerator <= share.denominator:
            raise InputEncodingError("numerator must be between 0 and denominator", field=f"shares[{i}].numerator")
        encoded.append({
            "operator": share.operator,
            "numerator": share.numerator,
            "denominator": share.denominator,
        })
    if not encoded:
        raise InputEncodingError("at least one operator share is required", field="shares")
    return encoded


def invoke(
    domain: Union[Domain, str],
    operation: Union[Enum, str],
    endpoint: str,
    private_key: str,
    arguments: Union[Mapping[str, Any], Sequence[Any]],
    **config: Any,
) -> SubmissionResult:
    """One-shot invocation with a fresh dispatcher.

    Args:
        domain: Functional domain
        operation: Operation name
        endpoint: Node URL
        private_key: Signing key
        arguments: Call arguments; identifiers may be hex strings or raw bytes
        **config: Extra ClientConfig fields (gas_limit, confirmation_timeout, ...)
    """
    dispatcher = OperationDispatcher(ClientConfig(rpc_url=endpoint, private_key=private_key, **config))
    return dispatcher.invoke(domain, operation, arguments)
