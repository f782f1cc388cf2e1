"""
precompile-client: encode, sign and submit calls to the asset, delegation
and reward precompiles of an EVM chain.

Example:
    >>> from precompile_client import OperationDispatcher, load_config
    >>> dispatcher = OperationDispatcher(load_config(private_key="0x...", default_asset_id="0x..."))
    >>> result = dispatcher.delegate(staker="0x3e10...", operator="exo1...", amount="100")
    >>> print(result.tx_hash)
"""

from .codec import encode_identifier, encode_operator, pad_address_to_32, parse_amount
from .config import ClientConfig, load_config
from .connector import ChainConnector, ChainSession
from .constants import (
    ASSETS_PRECOMPILE_ADDRESS,
    DELEGATION_PRECOMPILE_ADDRESS,
    REWARD_PRECOMPILE_ADDRESS,
)
from .dispatcher import OperationDispatcher, PipelineRun, invoke
from .encoder import decode_output, encode, encode_call
from .errors import (
    BroadcastError,
    ConfirmationTimeoutError,
    EncodingError,
    InputEncodingError,
    NodeConnectionError,
    NotFoundError,
    PipelineStateError,
    PrecompileError,
    SignatureError,
    SimulationFailedError,
    TransactionFailedError,
    UnsupportedOperationError,
)
from .models import (
    ConfirmationStatus,
    DecCoin,
    Domain,
    EncodedCall,
    OperatorShare,
    PipelineState,
    SignedTransaction,
    SimulationPolicy,
    SimulationResult,
    SubmissionResult,
)
from .schema import (
    AssetOperation,
    DelegationOperation,
    DomainSchema,
    OperationDescriptor,
    ParamEncoding,
    RewardOperation,
    SchemaEntry,
    SchemaRegistry,
)
from .signer import TransactionSigner
from .utils.logging import configure_logging, get_logger
from .version import __version__
from .waiter import ConfirmationWaiter

__all__ = [
    # Version
    "__version__",
    # Entry points
    "OperationDispatcher",
    "invoke",
    "ClientConfig",
    "load_config",
    # Pipeline components
    "ChainConnector",
    "ChainSession",
    "TransactionSigner",
    "ConfirmationWaiter",
    "PipelineRun",
    # Schema
    "Domain",
    "AssetOperation",
    "DelegationOperation",
    "RewardOperation",
    "SchemaRegistry",
    "DomainSchema",
    "SchemaEntry",
    "ParamEncoding",
    "OperationDescriptor",
    # Encoding
    "encode",
    "encode_call",
    "decode_output",
    "encode_identifier",
    "encode_operator",
    "pad_address_to_32",
    "parse_amount",
    # Models
    "PipelineState",
    "ConfirmationStatus",
    "SimulationPolicy",
    "EncodedCall",
    "SignedTransaction",
    "SimulationResult",
    "SubmissionResult",
    "DecCoin",
    "OperatorShare",
    # Addresses
    "ASSETS_PRECOMPILE_ADDRESS",
    "DELEGATION_PRECOMPILE_ADDRESS",
    "REWARD_PRECOMPILE_ADDRESS",
    # Errors
    "PrecompileError",
    "InputEncodingError",
    "EncodingError",
    "UnsupportedOperationError",
    "NodeConnectionError",
    "SignatureError",
    "BroadcastError",
    "SimulationFailedError",
    "NotFoundError",
    "TransactionFailedError",
    "ConfirmationTimeoutError",
    "PipelineStateError",
    # Logging
    "configure_logging",
    "get_logger",
]
