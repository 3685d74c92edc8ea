from __future__ import annotations

import pytest

from paperhand.state.canonical import (
    canonical_id,
    canonical_json_bytes,
    domain_sep_bytes,
    encode_bytes,
    encode_uvarint,
    id_from_bytes,
    id_to_bytes,
)


def test_canonical_json_is_sorted_and_compact() -> None:
    assert canonical_json_bytes({"b": 1, "a": [True, None, "x"]}) == b'{"a":[true,null,"x"],"b":1}'


def test_canonical_json_rejects_floats() -> None:
    with pytest.raises(TypeError):
        canonical_json_bytes({"fee": 1.0})
    with pytest.raises(TypeError):
        canonical_json_bytes({1: "x"})


def test_uvarint() -> None:
    assert encode_uvarint(0) == b"\x00"
    assert encode_uvarint(127) == b"\x7f"
    assert encode_uvarint(300) == b"\xac\x02"
    assert encode_bytes(b"abc") == b"\x03abc"
    with pytest.raises(ValueError):
        encode_uvarint(-1)


def test_domain_separator() -> None:
    assert domain_sep_bytes("state_root") == b"paperhand:state_root:v1\x00"
    with pytest.raises(ValueError):
        domain_sep_bytes("")


def test_canonical_id_forms() -> None:
    raw = "AB" * 32
    assert canonical_id(raw, name="id") == "0x" + "ab" * 32
    assert canonical_id("0X" + raw, name="id") == "0x" + "ab" * 32
    assert id_from_bytes(id_to_bytes(raw, name="id")) == "0x" + "ab" * 32
    for bad in ("0x12", "zz" * 32, ""):
        with pytest.raises(ValueError):
            canonical_id(bad, name="id")
    with pytest.raises(TypeError):
        canonical_id(5, name="id")
