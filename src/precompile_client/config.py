"""Client configuration.

The core never parses flags itself: the CLI (or any other caller) builds
a ClientConfig, either directly or with load_config(), which reads
``PRECOMPILE_*`` environment variables and an optional ``.env`` file.
"""
import os
from dataclasses import dataclass, field, replace
from typing import Any, Mapping, Optional

from dotenv import find_dotenv, load_dotenv

from .constants import (
    CONFIRMATION_POLL_INTERVAL_SECONDS,
    CONFIRMATION_TIMEOUT_SECONDS,
    DEFAULT_GAS_LIMIT,
    DEFAULT_NETWORK_ID,
    DEFAULT_RPC_URL,
    MAX_GAS_LIMIT,
    MAX_UINT32,
    PROVIDER_TIMEOUT_SECONDS,
)
from .errors import InputEncodingError
from .models import SimulationPolicy

__all__ = ["ClientConfig", "load_config", "ENV_PREFIX"]

ENV_PREFIX = "PRECOMPILE_"


@dataclass(frozen=True)
class ClientConfig:
    """Settings shared by every invocation of one process.

    Attributes:
        rpc_url: Node JSON-RPC endpoint (http(s) URL or IPC path)
        private_key: Hex private key of the signing account
        default_asset_id: Asset/token identifier used by asset and delegation calls
        network_id: LayerZero id of the client chain (uint32)
        gas_limit: Gas limit for every transaction
        confirmation_timeout: Seconds to wait for the transaction to be mined
        poll_interval: Seconds between receipt polls
        request_timeout: HTTP timeout for single RPC requests
        simulation_policy: Whether a failed preflight call aborts the broadcast
        schema_versions: Per-domain schema version overrides
    """
    rpc_url: str = DEFAULT_RPC_URL
    private_key: Optional[str] = field(default=None, repr=False)
    default_asset_id: Optional[str] = None
    network_id: int = DEFAULT_NETWORK_ID
    gas_limit: int = DEFAULT_GAS_LIMIT
    confirmation_timeout: float = CONFIRMATION_TIMEOUT_SECONDS
    poll_interval: float = CONFIRMATION_POLL_INTERVAL_SECONDS
    request_timeout: float = PROVIDER_TIMEOUT_SECONDS
    simulation_policy: SimulationPolicy = SimulationPolicy.WARN
    schema_versions: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not isinstance(self.simulation_policy, SimulationPolicy):
            object.__setattr__(self, "simulation_policy", SimulationPolicy(self.simulation_policy))

    def validate(self) -> "ClientConfig":
        """Check bounds.

        Raises:
            InputEncodingError: If a setting is out of range
        """
        if not self.rpc_url:
            raise InputEncodingError("rpc_url must be set", field="rpc_url")
        if not 0 <= self.network_id <= MAX_UINT32:
            raise InputEncodingError("network_id must fit in uint32", field="network_id")
        if self.gas_limit <= 0:
            raise InputEncodingError("gas_limit must be positive", field="gas_limit")
        # Validate gas limit doesn't exceed maximum
        if self.gas_limit > MAX_GAS_LIMIT:
            raise InputEncodingError(
                f"Gas limit ({self.gas_limit}) exceeds maximum ({MAX_GAS_LIMIT})",
                field="gas_limit",
            )
        if self.confirmation_timeout <= 0:
            raise InputEncodingError("confirmation_timeout must be positive", field="confirmation_timeout")
        if self.poll_interval <= 0:
            raise InputEncodingError("poll_interval must be positive", field="poll_interval")
        if self.request_timeout <= 0:
            raise InputEncodingError("request_timeout must be positive", field="request_timeout")
        return self

    def with_overrides(self, **overrides: Any) -> "ClientConfig":
        """Return a copy with every non-None override applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})


def _env(name: str) -> Optional[str]:
    value = os.getenv(ENV_PREFIX + name)
    return value if value not in (None, "") else None


def _parse_number(name: str, raw: Optional[str], cast):
    if raw is None:
        return None
    try:
        return cast(raw)
    except ValueError:
        raise InputEncodingError(f"{ENV_PREFIX}{name} must be a number", field=name.lower()) from None


def load_config(env_file: Optional[str] = None, **overrides: Any) -> ClientConfig:
    """Build a ClientConfig from the environment plus explicit overrides.

    Recognized variables: PRECOMPILE_RPC_URL, PRECOMPILE_PRIVATE_KEY,
    PRECOMPILE_DEFAULT_ASSET_ID, PRECOMPILE_NETWORK_ID, PRECOMPILE_GAS_LIMIT,
    PRECOMPILE_CONFIRMATION_TIMEOUT, PRECOMPILE_POLL_INTERVAL,
    PRECOMPILE_REQUEST_TIMEOUT, PRECOMPILE_SIMULATION_POLICY,
    PRECOMPILE_ASSET_SCHEMA, PRECOMPILE_DELEGATION_SCHEMA, PRECOMPILE_REWARD_SCHEMA.

    Args:
        env_file: Optional path to a dotenv file (existing variables win)
        **overrides: ClientConfig fields; None values are ignored

    Returns:
        Validated ClientConfig
    """
    load_dotenv(env_file or find_dotenv(usecwd=True))

    schema_versions = {}
    for domain in ("asset", "delegation", "reward"):
        version = _env(f"{domain.upper()}_SCHEMA")
        if version:
            schema_versions[domain] = version

    from_env = {
        "rpc_url": _env("RPC_URL"),
        "private_key": _env("PRIVATE_KEY"),
        "default_asset_id": _env("DEFAULT_ASSET_ID"),
        "network_id": _parse_number("NETWORK_ID", _env("NETWORK_ID"), int),
        "gas_limit": _parse_number("GAS_LIMIT", _env("GAS_LIMIT"), int),
        "confirmation_timeout": _parse_number("CONFIRMATION_TIMEOUT", _env("CONFIRMATION_TIMEOUT"), float),
        "poll_interval": _parse_number("POLL_INTERVAL", _env("POLL_INTERVAL"), float),
        "request_timeout": _parse_number("REQUEST_TIMEOUT", _env("REQUEST_TIMEOUT"), float),
        "simulation_policy": _env("SIMULATION_POLICY"),
        "schema_versions": schema_versions or None,
    }
    try:
        config = ClientConfig().with_overrides(**from_env).with_overrides(**overrides)
    except ValueError as e:
        raise InputEncodingError(str(e), field="simulation_policy") from None
    return config.validate()
