"""
Canonical encoding primitives.

Used by the persisted layouts, the state root and the JSON output of the CLI.
Identities are 32-byte ids written as lowercase 0x-prefixed hex.
"""

from __future__ import annotations

import hashlib
import json
import re
from typing import Any


ID_NBYTES = 32
DOMAIN_PREFIX = b"paperhand:"

_HEX_RE = re.compile(r"^[0-9a-f]*$")


def _check_json_value(value: Any) -> None:
    if isinstance(value, float):
        raise TypeError("floats are not allowed in canonical JSON")
    if isinstance(value, dict):
        for k, v in value.items():
            if not isinstance(k, str):
                raise TypeError("canonical JSON object keys must be str")
            _check_json_value(v)
    elif isinstance(value, (list, tuple)):
        for item in value:
            _check_json_value(item)


def canonical_json_bytes(value: Any) -> bytes:
    """Sorted keys, no whitespace, UTF-8, floats and NaN rejected."""
    _check_json_value(value)
    return json.dumps(
        value,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    ).encode("utf-8")


def sha256_hex(data: bytes) -> str:
    return "0x" + hashlib.sha256(data).hexdigest()


def domain_sep_bytes(label: str, version: int = 1) -> bytes:
    """ASCII, NUL-terminated prefix: ``paperhand:<label>:v<version>\\0``."""
    if not isinstance(label, str) or not label or not label.isascii() or "\x00" in label:
        raise ValueError(f"invalid domain label: {label!r}")
    if not isinstance(version, int) or isinstance(version, bool) or version <= 0:
        raise ValueError("version must be a positive int")
    return DOMAIN_PREFIX + f"{label}:v{version}".encode("ascii") + b"\x00"


def encode_uvarint(value: int) -> bytes:
    """Unsigned LEB128."""
    if not isinstance(value, int) or isinstance(value, bool) or value < 0:
        raise ValueError(f"uvarint must be a non-negative int, got {value!r}")
    out = bytearray()
    while True:
        byte, value = value & 0x7F, value >> 7
        out.append(byte | 0x80 if value else byte)
        if not value:
            return bytes(out)


def encode_bytes(value: bytes) -> bytes:
    """Length-prefixed bytes."""
    if not isinstance(value, (bytes, bytearray)):
        raise TypeError("value must be bytes")
    return encode_uvarint(len(value)) + bytes(value)


def canonical_id(value: str, *, name: str) -> str:
    """
    Canonical form of an account id (mint, wallet, treasury, admin).

    Accepts raw or 0x-prefixed hex in any case.
    """
    if not isinstance(value, str):
        raise TypeError(f"{name} must be a str")
    s = value.strip().lower()
    if s.startswith("0x"):
        s = s[2:]
    if len(s) != 2 * ID_NBYTES:
        raise ValueError(f"{name} must be {ID_NBYTES} bytes (hex length {2 * ID_NBYTES})")
    if not _HEX_RE.fullmatch(s):
        raise ValueError(f"{name} must be valid hex")
    return "0x" + s


def id_to_bytes(value: str, *, name: str) -> bytes:
    return bytes.fromhex(canonical_id(value, name=name)[2:])


def id_from_bytes(raw: bytes) -> str:
    if len(raw) != ID_NBYTES:
        raise ValueError(f"id must be exactly {ID_NBYTES} bytes")
    return "0x" + bytes(raw).hex()
