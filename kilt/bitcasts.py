"""Reinterpretation of floating-point values as raw bits and back."""

from __future__ import annotations

import math
import struct

_F32 = struct.Struct("<f")
_U32 = struct.Struct("<I")
_F64 = struct.Struct("<d")
_U64 = struct.Struct("<Q")
_F16 = struct.Struct("<e")
_U16 = struct.Struct("<H")


def _pack_bits(packer: struct.Struct, bits: int, width: int) -> bytes:
    if not 0 <= bits < (1 << width):
        raise ValueError(f"{bits!r} does not fit in {width} bits")
    return packer.pack(bits)


def fp32_from_bits(bits: int) -> float:
    """Return the single-precision value whose IEEE 754 encoding is ``bits``."""
    return _F32.unpack(_pack_bits(_U32, bits, 32))[0]


def fp32_to_bits(value: float) -> int:
    """Return the IEEE 754 single-precision encoding of ``value``.

    Values too large for single precision become infinities of the same sign.
    """
    try:
        packed = _F32.pack(value)
    except OverflowError:
        packed = _F32.pack(math.copysign(math.inf, value))
    return _U32.unpack(packed)[0]


def fp64_from_bits(bits: int) -> float:
    """Return the double-precision value whose IEEE 754 encoding is ``bits``."""
    return _F64.unpack(_pack_bits(_U64, bits, 64))[0]


def fp64_to_bits(value: float) -> int:
    """Return the IEEE 754 double-precision encoding of ``value``."""
    return _U64.unpack(_F64.pack(value))[0]


def fp16_to_fp32(bits: int) -> float:
    """Return the value of the IEEE 754 half-precision encoding ``bits``."""
    return _F16.unpack(_pack_bits(_U16, bits, 16))[0]