"""cborkit 基准测试共享 Fixtures."""

import pytest

from cborkit import CborFloat, CborMap, FloatWidth, dumps, from_python


@pytest.fixture
def record_obj():
    """生成一条混合类型的记录."""
    return {
        "id": 5000000000,
        "name": "hello" * 10,
        "score": 3.14,
        "active": True,
        "tags": ["a", "b", "c"],
        "blob": bytes(range(64)),
    }


@pytest.fixture
def record_item(record_obj) -> CborMap:
    """记录对应的数据项, 附带一个半精度浮点."""
    item = from_python(record_obj)
    item["half"] = CborFloat(1.5, FloatWidth.HALF)
    return item


@pytest.fixture
def record_bytes(record_item):
    """记录的编码数据."""
    return dumps(record_item)


@pytest.fixture
def large_obj(record_obj):
    """大数组: 1000 条记录."""
    return [record_obj] * 1000


@pytest.fixture
def large_bytes(large_obj):
    """大数组的编码数据."""
    return dumps(large_obj)


@pytest.fixture
def deep_bytes():
    """深度嵌套的数组 (100 层)."""
    return b"\x81" * 100 + b"\x01"
