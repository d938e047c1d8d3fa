"""keccak-256 and fixed-width encoding helpers."""

from __future__ import annotations

from eth_utils import keccak as _keccak

BYTES32_ZERO = b"\x00" * 32


def keccak256(*parts: bytes) -> bytes:
    """Hash the concatenation of ``parts``."""

    return _keccak(b"".join(parts))


def uint_be(value: int, width: int) -> bytes:
    if value < 0:
        raise ValueError("unsigned value must be non-negative")
    return value.to_bytes(width, "big")


def to_hex(data: bytes) -> str:
    return "0x" + data.hex()


def from_hex(text: str, *, length: int | None = None) -> bytes:
    raw = text[2:] if text.startswith(("0x", "0X")) else text
    data = bytes.fromhex(raw)
    if length is not None and len(data) != length:
        raise ValueError(f"expected {length} bytes, got {len(data)}")
    return data
