import pytest

from provisio.hashing import fnv


def test_fnv_with_data_should_return_corresponding_hash():
    assert fnv(b"hello world").hex() == "c95984f170c495ba01ee83118e66933f"


def test_fnv_of_empty_data_is_offset_basis():
    assert fnv(b"").hex() == "6c62272e07bb014262b821756295c58d"


@pytest.mark.parametrize("data", [b"", b"a", b"hello world", bytes(range(256))])
def test_fnv_returns_sixteen_bytes(data):
    assert len(fnv(data)) == 16


def test_fnv_is_deterministic_and_input_sensitive():
    assert fnv(b"lib1 :: Module") == fnv(b"lib1 :: Module")
    assert fnv(b"lib1 :: Module") != fnv(b"lib1 :: Modulf")