"""提供 cborkit 测试的公共 Fixtures 和配置."""

import pytest

from cborkit import (
    FALSE,
    NULL,
    TRUE,
    CborArray,
    CborByteString,
    CborFloat,
    CborInteger,
    CborMap,
    CborTextString,
    FloatWidth,
)


@pytest.fixture
def sample_map() -> CborMap:
    """提供一个包含各类数据项的映射.

    Returns:
        CborMap: 键依次为 "int", "float", "bytes", "list", "flags".
    """
    return CborMap(
        {
            "int": CborInteger(-42),
            "float": CborFloat(1.5, FloatWidth.HALF),
            "bytes": CborByteString(b"\x00\x01\x02"),
            "list": CborArray([CborInteger(1), CborTextString("two"), NULL]),
            "flags": CborArray([TRUE, FALSE]),
        }
    )


@pytest.fixture
def nested_array() -> CborArray:
    """提供一个三层嵌套的数组 [[[1]]].

    Returns:
        CborArray: 嵌套数组.
    """
    return CborArray([CborArray([CborArray([CborInteger(1)])])])
