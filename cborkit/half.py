"""IEEE 754 半精度 (binary16) 浮点编解码.

Python 的 float 是 binary64, 这里用位运算完成 binary16 与之的互转,
覆盖规格化数、次正规数、无穷与 NaN.
"""

import math
import struct

_STRUCT_F = struct.Struct(">f")

HALF_MAX = 65504.0
HALF_MIN_NORMAL = 2.0**-14
HALF_MIN_SUBNORMAL = 2.0**-24
HALF_EPSILON = 2.0**-10

_SIGN_BIT = 0x8000
_EXP_MASK = 0x7C00
_MANT_MASK = 0x03FF
_EXP_BIAS = 15
_MANT_BITS = 10
_QUIET_NAN = 0x7E00


def decode16(bits: int) -> float:
    """把 16 位模式解码为 Python float."""
    bits &= 0xFFFF
    exp = (bits & _EXP_MASK) >> _MANT_BITS
    mant = bits & _MANT_MASK

    if exp == 0:
        # 次正规数 (含 ±0)
        value = math.ldexp(mant, -24)
    elif exp == 0x1F:
        value = math.inf if mant == 0 else math.nan
    else:
        value = math.ldexp(mant | 0x0400, exp - _EXP_BIAS - _MANT_BITS)

    return -value if bits & _SIGN_BIT else value


def encode16(value: float) -> int:
    """把 float 编码为 16 位模式.

    舍入方式为就近舍入 (平局取偶), 尾数进位时向指数传递.
    超出范围饱和为带符号的无穷大, 小于最小次正规数一半的值冲刷为带符号零.
    NaN 统一编码为 quiet NaN 0x7E00 (保留符号位).
    """
    sign = _SIGN_BIT if math.copysign(1.0, value) < 0 else 0

    if math.isnan(value):
        return sign | _QUIET_NAN

    magnitude = abs(value)
    if math.isinf(magnitude):
        return sign | _EXP_MASK
    if magnitude == 0.0:
        return sign

    # magnitude = m * 2**e, 0.5 <= m < 1
    _, e = math.frexp(magnitude)
    exponent = e - 1

    if exponent < -14:
        # 次正规数: 以 2**-24 为单位取整, 进位到 1024 时自然成为最小规格化数
        units = round(math.ldexp(magnitude, 24))
        return sign | units

    units = round(math.ldexp(magnitude, _MANT_BITS - exponent))
    if units == 0x0800:
        units = 0x0400
        exponent += 1

    biased = exponent + _EXP_BIAS
    if biased >= 0x1F:
        return sign | _EXP_MASK
    return sign | (biased << _MANT_BITS) | (units & _MANT_MASK)


def round_to_half(value: float) -> float:
    """把 float 舍入到半精度可表示的值."""
    return decode16(encode16(value))


def to_float32(value: float) -> float:
    """把 float 舍入到单精度, 溢出时返回带符号的无穷大."""
    try:
        return _STRUCT_F.unpack(_STRUCT_F.pack(value))[0]
    except OverflowError:
        return math.copysign(math.inf, value)
