"""Transaction signer and submitter.

Builds a legacy (gasPrice) transaction envelope for an encoded call,
signs it with the local account for the chain id fetched right before
signing, pre-checks it with ``eth_call`` and broadcasts it.

Simulation is best-effort by default: a failing or all-zero preflight
result is logged and the transaction is still broadcast. With
``SimulationPolicy.ABORT`` it raises SimulationFailedError instead.
"""
from typing import Any, Dict, Optional

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import Web3

from .connector import ChainSession
from .constants import DEFAULT_GAS_LIMIT, MAX_GAS_LIMIT
from .encoder import decode_output
from .errors import InputEncodingError, SignatureError, SimulationFailedError
from .models import EncodedCall, SignedTransaction, SimulationPolicy, SimulationResult
from .schema import SchemaEntry
from .utils.logging import get_logger

__all__ = ["load_account", "TransactionSigner"]

_logger = get_logger(__name__)


def load_account(private_key: Optional[str]) -> LocalAccount:
    """Load the signing account from a hex private key.

    Raises:
        InputEncodingError: If the key is missing or malformed (the key is never echoed)
    """
    if not private_key:
        raise InputEncodingError("private key is required", field="private_key")
    # Sanitize private key errors to prevent key leakage in stack traces
    try:
        return Account.from_key(private_key)
    except Exception:
        raise InputEncodingError(
            "Invalid private key format (key not shown for security)", field="private_key"
        ) from None


class TransactionSigner:
    """Build, sign, preflight and broadcast precompile transactions.

    Args:
        gas_limit: Gas limit for every transaction
        simulation_policy: Whether a failed preflight aborts the broadcast
    """

    def __init__(
        self,
        gas_limit: int = DEFAULT_GAS_LIMIT,
        simulation_policy: SimulationPolicy = SimulationPolicy.WARN,
    ):
        if not 0 < gas_limit <= MAX_GAS_LIMIT:
            raise InputEncodingError(
                f"Gas limit ({gas_limit}) must be in (0, {MAX_GAS_LIMIT}]", field="gas_limit"
            )
        self.gas_limit = gas_limit
        self.simulation_policy = simulation_policy

    def build(
        self,
        nonce: int,
        call: EncodedCall,
        gas_price: int,
        gas_limit: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Build the unsigned legacy transaction envelope (value is always zero)."""
        return {
            "nonce": nonce,
            "to": Web3.to_checksum_address(call.destination),
            "value": 0,
            "gas": gas_limit or self.gas_limit,
            "gasPrice": gas_price,
            "data": Web3.to_hex(call.data),
        }

    def sign(self, envelope: Dict[str, Any], account: LocalAccount, chain_id: int) -> SignedTransaction:
        """Sign ``envelope`` with replay protection bound to ``chain_id``.

        Raises:
            SignatureError: If the envelope names another chain, signing fails,
                or the recovered sender is not the account
        """
        if envelope.get("chainId") not in (None, chain_id):
            raise SignatureError(
                f"Envelope chain id {envelope['chainId']} does not match node chain id {chain_id}",
                details={"chain_id": chain_id},
            )
        tx = {**envelope, "chainId": chain_id}
        try:
            signed = account.sign_transaction(tx)
            sender = Account.recover_transaction(signed.raw_transaction)
        except Exception as e:
            raise SignatureError(f"Failed to sign transaction: {e}", details={"chain_id": chain_id}) from e
        if sender != account.address:
            raise SignatureError(
                "Recovered signer does not match the account",
                details={"chain_id": chain_id, "recovered": sender},
            )

        tx_hash = Web3.to_hex(signed.hash)
        _logger.info("Signed transaction", extra={"tx_hash": tx_hash, "nonce": tx["nonce"], "chain_id": chain_id})
        return SignedTransaction(
            nonce=tx["nonce"],
            gas_limit=tx["gas"],
            gas_price=tx["gasPrice"],
            destination=tx["to"],
            value=tx["value"],
            data=Web3.to_bytes(hexstr=tx["data"]),
            chain_id=chain_id,
            raw_transaction=bytes(signed.raw_transaction),
            tx_hash=tx_hash,
            sender=sender,
        )

    def preflight(
        self,
        session: ChainSession,
        call: EncodedCall,
        signed: SignedTransaction,
        entry: Optional[SchemaEntry] = None,
    ) -> SimulationResult:
        """Simulate the call before spending gas.

        Raises:
            SimulationFailedError: If the simulation would fail and the policy is ABORT
        """
        result = session.simulate(call, signed.sender)
        if result.raw is not None and entry is not None and entry.outputs:
            try:
                result = SimulationResult(
                    raw=result.raw,
                    decoded=decode_output(entry, result.raw),
                    success_flag=entry.outputs[0].type == "bool",
                )
            except InputEncodingError as e:
                _logger.warning("Could not decode simulated return value", extra={"error": e.message})

        _logger.info(
            "Simulated call",
            extra={
                "operation": call.operation,
                "returned": result.decoded if result.decoded is not None else result.raw,
            },
        )
        if result.would_fail:
            reason = result.error or "the success flag returned by the contract is false"
            if self.simulation_policy is SimulationPolicy.ABORT:
                raise SimulationFailedError(
                    f"Simulated call failed: {reason}",
                    tx_hash=signed.tx_hash,
                    details={"operation": call.operation, "destination": call.destination},
                )
            _logger.warning(
                "Simulated call failed, broadcasting anyway",
                extra={"operation": call.operation, "tx_hash": signed.tx_hash, "reason": reason},
            )
        return result

    def broadcast(self, session: ChainSession, signed: SignedTransaction) -> str:
        """Send the signed transaction; returns its hash.

        Raises:
            BroadcastError: If the node rejects it
        """
        tx_hash = session.send_raw_transaction(signed.raw_transaction, tx_hash=signed.tx_hash)
        _logger.info("Broadcast transaction", extra={"tx_hash": tx_hash})
        return tx_hash
