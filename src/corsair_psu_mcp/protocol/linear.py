"""LINEAR11 decoding.

A LINEAR11 word packs a real number as ``mantissa * 2**exponent``::

    15        11 10                     0
    +-----------+------------------------+
    | exponent  |        mantissa        |
    | 5-bit s.  |     11-bit signed      |
    +-----------+------------------------+

Values are decoded straight to scaled integers (milli-units, micro-units)
so that results are exact and identical on every platform.
"""

from __future__ import annotations


def _sign_extend(value: int, bits: int) -> int:
    sign = 1 << (bits - 1)
    return (value & (sign - 1)) - (value & sign)


def decode_linear11(raw: int, scale: int = 1) -> int:
    """Decode a LINEAR11 word into ``value * scale``.

    Negative exponents shift right arithmetically, so negative results
    round toward negative infinity.

    Args:
        raw: The 16-bit word as an unsigned integer.
        scale: Integer multiplier applied before the exponent shift.

    Raises:
        ValueError: If ``raw`` does not fit in 16 bits.
    """
    if not 0 <= raw <= 0xFFFF:
        raise ValueError(f"LINEAR11 word must be 0-0xFFFF, got {raw:#x}")

    exponent = _sign_extend(raw >> 11, 5)
    mantissa = _sign_extend(raw & 0x7FF, 11)

    value = mantissa * scale
    if exponent >= 0:
        return value << exponent
    return value >> -exponent


def linear11_from_payload(payload: bytes, scale: int = 1) -> int:
    """Decode the little-endian LINEAR11 word at the start of a payload."""
    if len(payload) < 2:
        raise ValueError(f"LINEAR11 payload needs 2 bytes, got {len(payload)}")
    return decode_linear11(int.from_bytes(payload[:2], "little"), scale)
