"""CBOR 常量定义.

包含主类型 (Major Type)、附加信息 (Additional Info)、
标准标签 (Tag) 以及简单值 (Simple Value) 编号.
"""

from enum import IntEnum


class MajorType(IntEnum):
    """CBOR 主类型 (头字节的高 3 位)."""

    UNSIGNED_INT = 0
    NEGATIVE_INT = 1
    BYTE_STRING = 2
    TEXT_STRING = 3
    ARRAY = 4
    MAP = 5
    # 只在线格式中出现, 解码时折叠进下一个数据项的 tag
    TAG = 6
    OTHER = 7


# 附加信息 (头字节的低 5 位)
INFO_MASK = 0x1F
EXTRA_1B = 24
EXTRA_2B = 25
EXTRA_4B = 26
EXTRA_8B = 27
INDEFINITE = 31

# 浮点宽度对应的附加信息
FLOAT_HALF = EXTRA_2B
FLOAT_SINGLE = EXTRA_4B
FLOAT_DOUBLE = EXTRA_8B

# 不定长容器的结束标记
BREAK = 0xFF

# 标签
UNTAGGED = -1
TIME_DATE_STRING = 0
TIMESTAMP_UNIX = 1
BIGNUM_POS = 2
BIGNUM_NEG = 3
FRACTION = 4
BIGFLOAT = 5
EXPECTED_BASE64URL = 21
EXPECTED_BASE64 = 22
EXPECTED_BASE16 = 23
CBOR_DATA_ITEM = 24
URI = 32
BASE64URL = 33
BASE64 = 34
REGEX = 35
MIME_MESSAGE = 36
SELF_DESCRIBE_CBOR = 55799

TAG_MAX = 2**31 - 1

# 简单值
SIMPLE_FALSE = 20
SIMPLE_TRUE = 21
SIMPLE_NULL = 22
SIMPLE_UNDEFINED = 23
SIMPLE_MAX = 255

# 有符号 64 位整数边界
INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1
UINT64_MAX = 2**64 - 1


def is_valid_tag(tag: int) -> bool:
    """判断 tag 是否在可表示范围内 (含 UNTAGGED)."""
    return UNTAGGED <= tag <= TAG_MAX


def is_reserved_simple(value: int) -> bool:
    """24-31 是保留的简单值, 不能出现在数据项中."""
    return 24 <= value <= 31
