"""Address and byte canonicalization for precompile arguments.

Precompiles take client-chain identifiers as ``bytes`` of a fixed width.
A 20-byte address is *right*-padded with zero bytes to 32 bytes (the
meaningful bytes come first), which is not the usual ABI left-padding.
"""

from typing import Union

from eth_utils import is_hex, remove_0x_prefix, to_hex

from .constants import (
    ADDRESS_HEX_LENGTH,
    ADDRESS_LENGTH,
    BYTES32_HEX_LENGTH,
    BYTES32_LENGTH,
    MAX_UINT256,
)
from .errors import InputEncodingError
from .utils.logging import get_logger

__all__ = [
    "pad_address_to_32",
    "encode_identifier",
    "decode_hex_bytes",
    "encode_operator",
    "parse_amount",
]

_logger = get_logger(__name__)


def _hex_to_bytes(value: str, field: str) -> bytes:
    hex_str = remove_0x_prefix(value.strip())
    if not hex_str or not is_hex(hex_str):
        raise InputEncodingError(f"{field} must be a hex string", field=field)
    if len(hex_str) % 2:
        raise InputEncodingError(f"{field} must have an even number of hex digits", field=field)
    return bytes.fromhex(hex_str)


def pad_address_to_32(address: Union[str, bytes], field: str = "address") -> bytes:
    """Right-pad a 20-byte address with zero bytes to 32 bytes.

    Args:
        address: 0x-prefixed hex string or raw 20 bytes
        field: Field name for error messages

    Returns:
        32 bytes: the address bytes followed by 12 zero bytes

    Raises:
        InputEncodingError: If the input is not exactly 20 bytes
    """
    raw = _hex_to_bytes(address, field) if isinstance(address, str) else bytes(address)
    if len(raw) != ADDRESS_LENGTH:
        raise InputEncodingError(f"{field} must be {ADDRESS_LENGTH} bytes", field=field)
    padded = raw + b"\x00" * (BYTES32_LENGTH - ADDRESS_LENGTH)
    _logger.debug("Padded address", extra={"field": field, "padded": to_hex(padded)})
    return padded


def encode_identifier(value: Union[str, bytes], field: str = "identifier") -> bytes:
    """Canonicalize an identifier to its 32-byte schema encoding.

    A 20-byte address is right-padded to 32 bytes; a 32-byte blob is
    passed through unchanged. Any other length is rejected.

    Args:
        value: Hex string (with or without 0x) or raw bytes
        field: Field name for error messages

    Returns:
        32-byte identifier

    Raises:
        InputEncodingError: If the value is not hex or not 20/32 bytes long
    """
    if isinstance(value, str):
        hex_len = len(remove_0x_prefix(value.strip()))
        if hex_len not in (ADDRESS_HEX_LENGTH, BYTES32_HEX_LENGTH):
            raise InputEncodingError(
                f"{field} must be a 20-byte address or a 32-byte hex blob "
                f"(got {hex_len} hex digits)",
                field=field,
            )
        raw = _hex_to_bytes(value, field)
    elif isinstance(value, (bytes, bytearray)):
        raw = bytes(value)
    else:
        raise InputEncodingError(f"{field} must be hex string or bytes", field=field)

    if len(raw) == ADDRESS_LENGTH:
        return pad_address_to_32(raw, field)
    if len(raw) == BYTES32_LENGTH:
        return raw
    raise InputEncodingError(
        f"{field} must be {ADDRESS_LENGTH} or {BYTES32_LENGTH} bytes (got {len(raw)})",
        field=field,
    )


def decode_hex_bytes(value: Union[str, bytes], field: str = "value") -> bytes:
    """Decode a hex string into raw bytes without any padding."""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if not isinstance(value, str):
        raise InputEncodingError(f"{field} must be hex string or bytes", field=field)
    return _hex_to_bytes(value, field)


def encode_operator(operator: str, field: str = "operator") -> bytes:
    """Encode a bech32 operator address as the UTF-8 bytes of the string.

    Raises:
        InputEncodingError: If the operator is empty or not printable ASCII
    """
    if not isinstance(operator, str) or not operator.strip():
        raise InputEncodingError(f"{field} must be a non-empty string", field=field)
    operator = operator.strip()
    if not operator.isascii() or not operator.isprintable():
        raise InputEncodingError(f"{field} must be a bech32 string", field=field)
    return operator.encode("utf-8")


def parse_amount(value: Union[str, int], field: str = "amount") -> int:
    """Parse a base-10 amount into a uint256.

    Raises:
        InputEncodingError: If the amount is malformed, negative or overflows uint256
    """
    if isinstance(value, bool):
        raise InputEncodingError(f"{field} must be an integer", field=field)
    if isinstance(value, int):
        amount = value
    elif isinstance(value, str):
        text = value.strip()
        if not text.isdigit() or not text.isascii():
            raise InputEncodingError(f"Invalid {field}: {value!r}", field=field)
        amount = int(text, 10)
    else:
        raise InputEncodingError(f"{field} must be a decimal string or integer", field=field)

    if amount < 0:
        raise InputEncodingError(f"{field} must be non-negative", field=field)
    if amount > MAX_UINT256:
        raise InputEncodingError(f"{field} exceeds uint256", field=field)
    return amount
