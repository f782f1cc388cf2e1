from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

__all__ = [
    "Domain",
    "PipelineState",
    "ConfirmationStatus",
    "SimulationPolicy",
    "EncodedCall",
    "SignedTransaction",
    "SimulationResult",
    "SubmissionResult",
    "DecCoin",
    "OperatorShare",
]


class Domain(str, Enum):
    ASSET = "asset"
    DELEGATION = "delegation"
    REWARD = "reward"

    def __str__(self) -> str:
        return self.value


class PipelineState(str, Enum):
    IDLE = "idle"
    ARGUMENTS_ENCODED = "arguments_encoded"
    CONNECTED = "connected"
    SIGNED = "signed"
    BROADCAST = "broadcast"
    CONFIRMED = "confirmed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"

    def __str__(self) -> str:
        return self.value


class ConfirmationStatus(str, Enum):
    """Where a submitted transaction stands.

    A returned SubmissionResult is MINED_SUCCESS; the other values are
    attached to pipeline errors as ``details["confirmation_status"]``.
    """

    PENDING = "pending"
    MINED_SUCCESS = "mined_success"
    MINED_FAILURE = "mined_failure"
    TIMED_OUT = "timed_out"

    def __str__(self) -> str:
        return self.value


class SimulationPolicy(str, Enum):
    """What to do when the preflight ``eth_call`` fails or returns all zeros."""

    WARN = "warn"
    ABORT = "abort"


@dataclass(frozen=True)
class EncodedCall:
    """Destination precompile plus the ABI-encoded call payload."""
    destination: str
    data: bytes
    operation: str
    function_name: str

    @property
    def selector(self) -> bytes:
        return self.data[:4]


@dataclass(frozen=True)
class SignedTransaction:
    """Legacy transaction signed for a specific chain id.

    Attributes:
        nonce: Account nonce fetched right before signing
        gas_limit: Gas limit (configured constant)
        gas_price: Gas price sampled at submission time
        destination: Precompile address
        value: Always zero
        data: Call payload
        chain_id: Chain id the signature is bound to
        raw_transaction: RLP-encoded signed transaction
        tx_hash: Keccak hash of ``raw_transaction`` (0x hex)
        sender: Address recovered from the signature
    """
    nonce: int
    gas_limit: int
    gas_price: int
    destination: str
    value: int
    data: bytes
    chain_id: int
    raw_transaction: bytes
    tx_hash: str
    sender: str


@dataclass(frozen=True)
class SimulationResult:
    """Outcome of the non-committing preflight call."""
    raw: Optional[bytes]
    decoded: Optional[Tuple[Any, ...]] = None
    error: Optional[str] = None
    # decoded[0] is the contract's bool success flag
    success_flag: bool = False

    @property
    def would_fail(self) -> bool:
        # Precompiles report failure through a false success flag, not a revert
        if self.error is not None or self.raw is None:
            return True
        if self.success_flag and self.decoded and self.decoded[0] is False:
            return True
        return all(b == 0 for b in self.raw)


@dataclass
class SubmissionResult:
    tx_hash: str
    operation: str
    destination: str
    status: ConfirmationStatus = ConfirmationStatus.PENDING
    simulation: Optional[SimulationResult] = None
    block_number: Optional[int] = None
    gas_used: Optional[int] = None
    states: List[PipelineState] = field(default_factory=list)

    @property
    def simulated_return(self) -> Optional[bytes]:
        return self.simulation.raw if self.simulation else None

    @property
    def confirmed(self) -> bool:
        return self.status == ConfirmationStatus.MINED_SUCCESS

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tx_hash": self.tx_hash,
            "operation": self.operation,
            "destination": self.destination,
            "status": self.status.value,
            "block_number": self.block_number,
            "gas_used": self.gas_used,
        }


@dataclass(frozen=True)
class DecCoin:
    """Reward amount in one denomination."""
    denom: str
    amount: int


@dataclass(frozen=True)
class OperatorShare:
    """Fraction (numerator / denominator) of a reward routed to one operator."""
    operator: str
    numerator: int
    denominator: int
