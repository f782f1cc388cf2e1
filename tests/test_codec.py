import pytest

from precompile_client.codec import (
    decode_hex_bytes,
    encode_identifier,
    encode_operator,
    pad_address_to_32,
    parse_amount,
)
from precompile_client.errors import InputEncodingError

ADDRESS = "0x3e108c058e8066da635321dc3018294ca82ddedf"


def test_pad_address_right_pads_with_zeros():
    padded = pad_address_to_32(ADDRESS)
    assert len(padded) == 32
    assert padded[:20] == bytes.fromhex(ADDRESS[2:])
    assert padded[20:] == b"\x00" * 12


def test_pad_address_accepts_raw_bytes():
    raw = bytes.fromhex(ADDRESS[2:])
    assert pad_address_to_32(raw) == raw + b"\x00" * 12


@pytest.mark.parametrize("bad", ["0x1234", b"\x01" * 32, "0x" + "zz" * 20])
def test_pad_address_rejects_non_address(bad):
    with pytest.raises(InputEncodingError):
        pad_address_to_32(bad)


def test_identifier_20_bytes_is_padded():
    assert encode_identifier(ADDRESS) == pad_address_to_32(ADDRESS)


def test_identifier_without_prefix():
    assert encode_identifier(ADDRESS[2:]) == pad_address_to_32(ADDRESS)


def test_identifier_32_bytes_passes_through():
    blob = "0x" + "ab" * 32
    assert encode_identifier(blob) == bytes.fromhex("ab" * 32)
    assert encode_identifier(bytes.fromhex("cd" * 32)) == bytes.fromhex("cd" * 32)


@pytest.mark.parametrize("length", [0, 2, 38, 42, 62, 66, 128])
def test_identifier_rejects_other_lengths(length):
    with pytest.raises(InputEncodingError) as exc:
        encode_identifier("0x" + "1" * length, "staker")
    assert exc.value.field == "staker"
    assert exc.value.code == "INPUT_ENCODING_ERROR"


def test_identifier_rejects_non_hex():
    with pytest.raises(InputEncodingError):
        encode_identifier("0x" + "g" * 40)


def test_identifier_rejects_wrong_byte_length():
    with pytest.raises(InputEncodingError):
        encode_identifier(b"\x01" * 21)


def test_decode_hex_bytes_is_unpadded():
    assert decode_hex_bytes(ADDRESS) == bytes.fromhex(ADDRESS[2:])
    assert decode_hex_bytes("0x0102") == b"\x01\x02"


def test_decode_hex_bytes_rejects_odd_length():
    with pytest.raises(InputEncodingError):
        decode_hex_bytes("0x123")


def test_operator_is_utf8_of_bech32_string():
    operator = "exo18cggcpvwspnd5c6ny8wrqxpffj5zmhklprtnph"
    assert encode_operator(operator) == operator.encode()


@pytest.mark.parametrize("bad", ["", "   ", "exo1é", None])
def test_operator_rejects_empty_or_non_ascii(bad):
    with pytest.raises(InputEncodingError):
        encode_operator(bad)


def test_parse_amount():
    assert parse_amount("1000") == 1000
    assert parse_amount(" 42 ") == 42
    assert parse_amount(7) == 7
    assert parse_amount(str(2**256 - 1)) == 2**256 - 1


@pytest.mark.parametrize("bad", ["-1", "1.5", "0x10", "", "abc", str(2**256), -1, True])
def test_parse_amount_rejects(bad):
    with pytest.raises(InputEncodingError):
        parse_amount(bad)
