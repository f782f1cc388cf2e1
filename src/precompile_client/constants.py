"""Constants for the precompile client.

This module defines constant values used across the package,
including ABI encoding widths, gas parameters, precompile addresses,
timeouts and validation bounds.
"""

# ABI Encoding Constants
ABI_SELECTOR_LENGTH = 4
ABI_WORD_LENGTH = 32
REVERT_SELECTOR = "0x08c379a0"

# Identifier Constants
ADDRESS_LENGTH = 20
ADDRESS_HEX_LENGTH = 40
BYTES32_LENGTH = 32
BYTES32_HEX_LENGTH = 64
MAX_DYNAMIC_BYTES_LENGTH = 4096  # Largest `bytes` argument accepted by the encoder

# Precompile Addresses
ASSETS_PRECOMPILE_ADDRESS = "0x0000000000000000000000000000000000000804"
DELEGATION_PRECOMPILE_ADDRESS = "0x0000000000000000000000000000000000000805"
REWARD_PRECOMPILE_ADDRESS = "0x0000000000000000000000000000000000000806"

# Gas Constants
DEFAULT_GAS_LIMIT = 500_000
MAX_GAS_LIMIT = 10_000_000

# Amount Validation Constants
MAX_UINT256 = 2**256 - 1
MAX_UINT32 = 2**32 - 1

# Network Constants
DEFAULT_RPC_URL = "http://localhost:8545"
DEFAULT_NETWORK_ID = 101  # LayerZero id of the client chain
PROVIDER_TIMEOUT_SECONDS = 30
CONFIRMATION_TIMEOUT_SECONDS = 5 * 60
CONFIRMATION_POLL_INTERVAL_SECONDS = 1.0

# Receipt status reported by the node for a successful transaction
RECEIPT_STATUS_SUCCESS = 1

__all__ = [
    "ABI_SELECTOR_LENGTH",
    "ABI_WORD_LENGTH",
    "REVERT_SELECTOR",
    "ADDRESS_LENGTH",
    "ADDRESS_HEX_LENGTH",
    "BYTES32_LENGTH",
    "BYTES32_HEX_LENGTH",
    "MAX_DYNAMIC_BYTES_LENGTH",
    "ASSETS_PRECOMPILE_ADDRESS",
    "DELEGATION_PRECOMPILE_ADDRESS",
    "REWARD_PRECOMPILE_ADDRESS",
    "DEFAULT_GAS_LIMIT",
    "MAX_GAS_LIMIT",
    "MAX_UINT256",
    "MAX_UINT32",
    "DEFAULT_RPC_URL",
    "DEFAULT_NETWORK_ID",
    "PROVIDER_TIMEOUT_SECONDS",
    "CONFIRMATION_TIMEOUT_SECONDS",
    "CONFIRMATION_POLL_INTERVAL_SECONDS",
    "RECEIPT_STATUS_SUCCESS",
]
