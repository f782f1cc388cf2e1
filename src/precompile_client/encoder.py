"""ABI call encoder for precompile operations.

Call data is built by the domain schema's web3 contract, so types,
integer widths and arity are enforced by web3 and eth_abi. Before that,
``bytes`` parameters are canonicalized according to their ParamEncoding
(identifiers right-padded to 32 bytes, operators as UTF-8 bytes, hex
blobs decoded) and dynamic byte strings are capped in size. Encoding is
deterministic: the same entry and arguments always produce the same
payload.

Tuple parameters accept a mapping keyed by component name, a dataclass
with matching field names, or a positional sequence.
"""
import dataclasses
from typing import Any, Mapping, Sequence, Tuple, Union

from eth_abi import decode as abi_decode
from eth_abi.exceptions import DecodingError, EncodingError as ABIEncodingError
from eth_utils import function_signature_to_4byte_selector
from hexbytes import HexBytes
from web3.exceptions import MismatchedABI, Web3ValidationError

from .codec import decode_hex_bytes, encode_identifier, encode_operator
from .constants import MAX_DYNAMIC_BYTES_LENGTH
from .errors import InputEncodingError
from .models import EncodedCall
from .schema import OperationDescriptor, ParamEncoding, ParamSpec, SchemaEntry
from .utils.logging import get_logger

__all__ = ["encode", "encode_call", "decode_output", "selector", "canonicalize"]

_logger = get_logger(__name__)


def selector(entry: SchemaEntry) -> bytes:
    return function_signature_to_4byte_selector(entry.signature)


def _fail(param: ParamSpec, path: str, reason: str) -> InputEncodingError:
    return InputEncodingError(f"{path} ({param.type}) {reason}", field=path)


def _encode_bytes(param: ParamSpec, value: Any, path: str) -> Any:
    if param.encoding is ParamEncoding.IDENTIFIER:
        value = encode_identifier(value, path)
    elif param.encoding is ParamEncoding.OPERATOR:
        if not isinstance(value, (bytes, bytearray)):
            value = encode_operator(value, path)
    elif param.encoding is ParamEncoding.RAW:
        value = decode_hex_bytes(value, path)

    if isinstance(value, (bytes, bytearray)):
        if len(value) > MAX_DYNAMIC_BYTES_LENGTH:
            raise _fail(param, path, f"exceeds {MAX_DYNAMIC_BYTES_LENGTH} bytes")
        return bytes(value)
    return value


def canonicalize(param: ParamSpec, value: Any, path: str) -> Any:
    """Bring ``value`` into the shape web3 encodes for ``param``.

    Type checking is left to web3; only the canonical byte encodings,
    the size cap and the tuple/array shapes are handled here.
    """
    typ = param.type

    if typ.endswith("]"):
        if isinstance(value, (str, bytes, bytearray, Mapping)) or not isinstance(value, Sequence):
            raise _fail(param, path, "must be a list")
        element = dataclasses.replace(param, type=typ[: typ.rindex("[")])
        return [canonicalize(element, item, f"{path}[{i}]") for i, item in enumerate(value)]

    if typ.startswith("("):
        return _canonicalize_tuple(param, value, path)

    if typ == "bytes":
        return _encode_bytes(param, value, path)

    return value


def _canonicalize_tuple(param: ParamSpec, value: Any, path: str) -> Tuple[Any, ...]:
    names = [c.name for c in param.components]
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        value = {f.name: getattr(value, f.name) for f in dataclasses.fields(value)}

    if isinstance(value, Mapping):
        unknown = set(value) - set(names)
        if unknown:
            raise _fail(param, path, f"has unexpected fields: {', '.join(sorted(unknown))}")
        missing = [n for n in names if n not in value]
        if missing:
            raise _fail(param, path, f"is missing fields: {', '.join(missing)}")
        items = [value[n] for n in names]
    elif isinstance(value, (list, tuple)):
        if len(value) != len(param.components):
            raise _fail(param, path, f"must have {len(param.components)} fields")
        items = list(value)
    else:
        raise _fail(param, path, "must be a mapping, dataclass or sequence")

    return tuple(
        canonicalize(component, item, f"{path}.{component.name}")
        for component, item in zip(param.components, items)
    )


def encode(entry: SchemaEntry, arguments: Sequence[Any]) -> bytes:
    """Encode ordered arguments into call data (selector + ABI body).

    Args:
        entry: Schema entry of the operation
        arguments: Values in the entry's parameter order

    Returns:
        Call payload bytes

    Raises:
        InputEncodingError: On arity or type mismatch
    """
    if isinstance(arguments, (str, bytes, Mapping)):
        raise InputEncodingError(f"{entry.function_name} arguments must be a sequence")
    if len(arguments) != entry.arity:
        raise InputEncodingError(
            f"{entry.function_name} expects {entry.arity} arguments, got {len(arguments)}",
            details={"operation": str(entry.operation)},
        )
    values = [
        canonicalize(param, value, param.name or f"arg{i}")
        for i, (param, value) in enumerate(zip(entry.inputs, arguments))
    ]
    try:
        data = entry.contract.encode_abi(entry.function_name, args=values)
    except (MismatchedABI, Web3ValidationError, ABIEncodingError, TypeError, ValueError) as e:
        raise InputEncodingError(
            f"{entry.function_name}: {e}",
            details={"operation": str(entry.operation)},
        ) from e
    return bytes(HexBytes(data))


def encode_call(
    descriptor: OperationDescriptor,
    arguments: Union[Mapping[str, Any], Sequence[Any]],
) -> EncodedCall:
    """Encode a resolved operation. Named arguments are ordered by the schema entry."""
    entry = descriptor.entry
    ordered = entry.bind(arguments) if isinstance(arguments, Mapping) else arguments
    data = encode(entry, ordered)
    _logger.debug(
        "Encoded call",
        extra={
            "operation": descriptor.name,
            "function": entry.function_name,
            "destination": descriptor.destination,
            "payload": "0x" + data.hex(),
        },
    )
    return EncodedCall(
        destination=descriptor.destination,
        data=data,
        operation=descriptor.name,
        function_name=entry.function_name,
    )


def decode_output(entry: SchemaEntry, data: bytes) -> Tuple[Any, ...]:
    """Decode return data with the entry's output types.

    Raises:
        InputEncodingError: If the data does not match the output types
    """
    try:
        return tuple(abi_decode(list(entry.output_types), bytes(data)))
    except (DecodingError, ValueError, TypeError) as e:
        raise InputEncodingError(f"cannot decode {entry.function_name} output: {e}") from e