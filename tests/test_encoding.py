import pytest

from provisio.encoding import (
    base32_decode,
    base32_encode,
    base64_decode,
    base64_encode,
)

ROUND_TRIP_CASES = [
    "A",
    "0",
    "1",
    "One",
    "Hello, World !!!",
    "lib1::Module1",
    "my::very::special_crate_123::Module456<Complex>",
]


def test_base32_encode_with_data_should_return_encoded_data():
    assert base32_encode(b"lib1 :: Module") == b"NRUWEMJAHI5CATLPMR2WYZI"


def test_base32_decode_with_encoded_data_should_return_decoded_data():
    assert base32_decode(b"NRUWEMJAHI5CATLPMR2WYZI") == b"lib1 :: Module"


@pytest.mark.parametrize("case", ROUND_TRIP_CASES)
def test_base32_encode_should_return_decodable_string(case):
    data = case.encode()
    encoded = base32_encode(data)
    assert len(encoded) <= len(data) * 8 // 5 + 2
    assert base32_decode(encoded) == data


def test_base32_encode_output_has_no_padding_or_lowercase():
    encoded = base32_encode(b"One")
    assert b"=" not in encoded
    assert encoded == encoded.upper()


def test_base32_empty_round_trip():
    assert base32_encode(b"") == b""
    assert base32_decode(b"") == b""


@pytest.mark.parametrize("bad", [b"nrUW", b"AB=C", b"AB1C"])
def test_base32_decode_rejects_invalid_chars(bad):
    with pytest.raises(ValueError):
        base32_decode(bad)


def test_base64_encode_with_data_should_return_encoded_data():
    assert base64_encode(b"lib1 :: Module") == b"bGliMSA6OiBNb2R1bGU="


def test_base64_decode_with_encoded_data_should_return_decoded_data():
    assert base64_decode(b"bGliMSA6OiBNb2R1bGU=") == b"lib1 :: Module"


@pytest.mark.parametrize("case", ROUND_TRIP_CASES)
def test_base64_encode_should_return_decodable_string(case):
    data = case.encode()
    encoded = base64_encode(data)
    assert len(encoded) == (len(data) + 2) // 3 * 4
    decoded = base64_decode(encoded)
    assert len(decoded) <= len(encoded) * 3 // 4
    assert decoded == data


def test_base64_decode_rejects_invalid_chars():
    with pytest.raises(ValueError):
        base64_decode(b"bGl*")