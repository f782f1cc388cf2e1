"""
Exception hierarchy for the precompile client.

Every failure in the encode/sign/submit pipeline is terminal for the
invocation and is raised as a subclass of PrecompileError, which carries
a machine-readable code, the transaction hash when one was produced, and
a details dictionary with the operation name and destination.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

__all__ = [
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
]


class PrecompileError(Exception):
    """
    Base exception for all precompile client errors.

    Attributes:
        message: Human-readable error description.
        code: Machine-readable error code (e.g., "BROADCAST_FAILED").
        tx_hash: Transaction hash, if the pipeline got far enough to sign.
        details: Additional context (operation, destination, ...).

    Example:
        >>> raise PrecompileError(
        ...     "Transaction failed",
        ...     code="TX_FAILED",
        ...     tx_hash="0x123...",
        ...     details={"operation": "deposit"}
        ... )
    """

    def __init__(
        self,
        message: str,
        *,
        code: str = "PRECOMPILE_ERROR",
        tx_hash: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.tx_hash = tx_hash
        self.details = details or {}

    def __str__(self) -> str:
        parts = [f"[{self.code}] {self.message}"]
        if self.tx_hash:
            parts.append(f"(tx: {self.tx_hash})")
        return " ".join(parts)

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code!r}, "
            f"tx_hash={self.tx_hash!r}, "
            f"details={self.details!r})"
        )

    def with_context(self, **context: Any) -> "PrecompileError":
        """Attach invocation context without overwriting existing keys."""
        tx_hash = context.pop("tx_hash", None)
        if tx_hash and not self.tx_hash:
            self.tx_hash = tx_hash
        for key, value in context.items():
            if value is not None:
                self.details.setdefault(key, value)
        return self

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to a dictionary for JSON serialization.

        Returns:
            Dictionary representation of the error.
        """
        return {
            "error": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "tx_hash": self.tx_hash,
            "details": self.details,
        }


class InputEncodingError(PrecompileError):
    """
    Raised when an argument has the wrong shape, width or type.

    Example:
        >>> raise InputEncodingError("identifier must be 20 or 32 bytes", field="staker")
    """

    def __init__(
        self,
        message: str,
        *,
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        if field:
            details["field"] = field
        super().__init__(message, code="INPUT_ENCODING_ERROR", details=details)
        self.field = field


# Call encoder failures are input encoding failures.
EncodingError = InputEncodingError


class UnsupportedOperationError(PrecompileError):
    """Raised for a (domain, operation) pair the active schemas do not define."""

    def __init__(self, domain: Any, operation: Any) -> None:
        super().__init__(
            f"Operation {operation!s} is not supported by the {domain!s} domain",
            code="UNSUPPORTED_OPERATION",
            details={"domain": str(domain), "operation": str(operation)},
        )
        self.domain = domain
        self.operation = operation


class NodeConnectionError(PrecompileError):
    """
    Raised when the node is unreachable or a chain id / nonce / gas price
    request fails.
    """

    def __init__(
        self,
        message: str,
        *,
        endpoint: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        if endpoint:
            details["endpoint"] = endpoint
        super().__init__(message, code="CONNECTION_ERROR", details=details)
        self.endpoint = endpoint


class SignatureError(PrecompileError):
    """Raised when signing fails or is not bound to the fetched chain id."""

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, code="SIGNATURE_ERROR", details=details)


class BroadcastError(PrecompileError):
    """Raised when the node rejects a signed transaction. The node's message is kept verbatim."""

    def __init__(
        self,
        message: str,
        *,
        tx_hash: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, code="BROADCAST_FAILED", tx_hash=tx_hash, details=details)


class SimulationFailedError(PrecompileError):
    """Raised when the preflight call fails and the simulation policy is ``abort``."""

    def __init__(
        self,
        message: str,
        *,
        tx_hash: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, code="SIMULATION_FAILED", tx_hash=tx_hash, details=details)


class NotFoundError(PrecompileError):
    """Raised when the node does not know the submitted transaction."""

    def __init__(self, tx_hash: str, *, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(
            f"Transaction {tx_hash} not found",
            code="TRANSACTION_NOT_FOUND",
            tx_hash=tx_hash,
            details=details,
        )


class TransactionFailedError(PrecompileError):
    """
    Raised when a transaction is mined with a non-success receipt status.

    Example:
        >>> raise TransactionFailedError("0xabc...", status=0, block_number=120)
    """

    def __init__(
        self,
        tx_hash: str,
        *,
        status: int,
        block_number: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        details["status"] = status
        if block_number is not None:
            details["block_number"] = block_number
        super().__init__(
            f"Transaction failed with status: {status}",
            code="TRANSACTION_FAILED",
            tx_hash=tx_hash,
            details=details,
        )
        self.status = status
        self.block_number = block_number


class ConfirmationTimeoutError(PrecompileError):
    """Raised when a broadcast transaction is not mined before the deadline."""

    def __init__(
        self,
        tx_hash: str,
        timeout: float,
        *,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        details["timeout_seconds"] = timeout
        super().__init__(
            f"Transaction not mined within {timeout:g}s; re-check it manually",
            code="CONFIRMATION_TIMEOUT",
            tx_hash=tx_hash,
            details=details,
        )
        self.timeout = timeout


class PipelineStateError(PrecompileError):
    """Raised when an invocation attempts an illegal pipeline state transition."""

    def __init__(self, current: Any, target: Any) -> None:
        super().__init__(
            f"Cannot transition pipeline from {current!s} to {target!s}",
            code="INVALID_PIPELINE_TRANSITION",
            details={"from": str(current), "to": str(target)},
        )
