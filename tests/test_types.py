"""CBOR 数据项模型测试.

覆盖 cborkit.types 模块的核心特性:
1. 构造校验 (标签范围, 保留简单值, 整数范围)
2. 数值等价 (整数与浮点的相等性与哈希)
3. 容器的所有权语义 (深拷贝, 无环)
4. 映射的键语义 (插入顺序, 覆盖)
5. 诊断记法与 JSON 投影
"""

import math
import threading

import pytest

from cborkit import (
    EXPECTED_BASE16,
    EXPECTED_BASE64,
    FALSE,
    NULL,
    TAG_MAX,
    TRUE,
    UNDEFINED,
    URI,
    CborArray,
    CborByteString,
    CborConversionError,
    CborFloat,
    CborInteger,
    CborMap,
    CborSimple,
    CborTextString,
    CborTypeError,
    CborValueError,
    FloatWidth,
    Kind,
    MajorType,
)
from cborkit.half import to_float32

# --- 构造校验 ---


@pytest.mark.parametrize("tag", [-2, TAG_MAX + 1, 2**40])
def test_invalid_tag_rejected(tag: int) -> None:
    """超出 [-1, 2**31-1] 的标签应被拒绝."""
    with pytest.raises(CborValueError, match="Invalid tag"):
        CborInteger(1, tag=tag)


def test_tag_boundaries_accepted() -> None:
    """边界标签值应被接受."""
    assert CborInteger(1, tag=TAG_MAX).tag == TAG_MAX
    assert CborInteger(1, tag=0).is_tagged
    assert not CborInteger(1).is_tagged


def test_tag_type_checked() -> None:
    """非 int 标签应抛出 CborTypeError (同时是 TypeError)."""
    with pytest.raises(TypeError):
        CborTextString("x", tag="32")  # type: ignore[arg-type]


@pytest.mark.parametrize("value", range(24, 32))
def test_reserved_simple_values(value: int) -> None:
    """简单值 24-31 是保留的."""
    with pytest.raises(CborValueError, match="reserved"):
        CborSimple(value)


@pytest.mark.parametrize("value", [-1, 256])
def test_simple_value_out_of_range(value: int) -> None:
    """简单值必须在 0-255 之间."""
    with pytest.raises(CborValueError):
        CborSimple.create(value)


def test_integer_range() -> None:
    """整数必须在有符号 64 位范围内."""
    assert CborInteger(2**63 - 1).value == 2**63 - 1
    assert CborInteger(-(2**63)).value == -(2**63)

    with pytest.raises(CborValueError, match="64-bit"):
        CborInteger(2**63)
    with pytest.raises(CborTypeError):
        CborInteger(True)


def test_integer_major_type_override() -> None:
    """记录的主类型必须与符号一致."""
    item = CborInteger(5, major_type=MajorType.UNSIGNED_INT)
    assert item.major_type == MajorType.UNSIGNED_INT
    assert CborInteger(-5).major_type == MajorType.NEGATIVE_INT

    with pytest.raises(CborValueError, match="does not match"):
        CborInteger(-1, major_type=MajorType.UNSIGNED_INT)


def test_byte_string_requires_bytes() -> None:
    """字节串只接受 bytes 类对象."""
    assert CborByteString(bytearray(b"ab")).value == b"ab"
    with pytest.raises(CborTypeError):
        CborByteString("ab")  # type: ignore[arg-type]


def test_text_string_rejects_lone_surrogate() -> None:
    """无法编码为 UTF-8 的文本应被拒绝."""
    with pytest.raises(CborValueError):
        CborTextString("\ud800")


# --- 头部信息 ---


@pytest.mark.parametrize(
    ("item", "info"),
    [
        (CborInteger(23), 23),
        (CborInteger(24), 24),
        (CborInteger(500), 25),
        (CborInteger(-500), 25),
        (CborInteger(2**32), 27),
        (CborFloat(1.0), 27),
        (CborFloat(1.0, FloatWidth.HALF), 25),
        (CborTextString("a" * 300), 25),
        (CborSimple(255), 24),
        (FALSE, 20),
    ],
)
def test_additional_info(item, info: int) -> None:
    """additional_info 应为最短宽度编码."""
    assert item.additional_info == info


def test_kind_and_major_type() -> None:
    """每种数据项都有唯一的种类."""
    assert CborArray().kind == Kind.ARRAY
    assert CborMap().major_type == MajorType.MAP
    assert CborFloat(1.0).major_type == MajorType.OTHER
    assert NULL.kind == Kind.SIMPLE


# --- 浮点宽度 ---


def test_float_rounded_to_width() -> None:
    """构造时值应舍入到对应宽度."""
    assert CborFloat(0.1, FloatWidth.SINGLE).value == to_float32(0.1)
    assert CborFloat(1.0 / 3.0, FloatWidth.HALF).value == 0.333251953125
    assert CborFloat(1e39, FloatWidth.SINGLE).value == math.inf
    assert CborFloat(0.1).value == 0.1


def test_float_width_validated() -> None:
    """无效的宽度标记应被拒绝."""
    with pytest.raises(CborValueError):
        CborFloat(1.0, 24)  # type: ignore[arg-type]


def test_float_rejects_huge_int() -> None:
    """超出 double 范围的整数报 CborValueError, 而不是 OverflowError."""
    with pytest.raises(CborValueError, match="too large"):
        CborFloat(10**400)
    assert CborFloat(2**1023).value == 2.0**1023


# --- 数值等价 ---


def test_integer_float_equivalence() -> None:
    """数值相同且标签相同的整数与浮点应相等, 哈希一致."""
    a = CborInteger(1, tag=5)
    b = CborFloat(1.0, tag=5)

    assert a == b
    assert b == a
    assert hash(a) == hash(b)


def test_integer_float_equivalence_requires_same_tag() -> None:
    """标签不同则不相等."""
    assert CborInteger(1) != CborFloat(1.0, tag=5)
    assert CborInteger(1, tag=4) != CborInteger(1, tag=5)


def test_integer_float_equivalence_across_widths() -> None:
    """半精度 1.0 与整数 1 同样相等."""
    assert CborInteger(1) == CborFloat(1.0, FloatWidth.HALF)
    assert CborInteger(1) != CborFloat(1.5)


def test_integer_float_equivalence_precision() -> None:
    """float(int) 丢失精度时不相等."""
    assert CborInteger(2**53) == CborFloat(2.0**53)
    assert CborInteger(2**53 + 1) != CborFloat(2.0**53)


def test_float_equality_uses_bits() -> None:
    """浮点比较原始位模式: NaN 等于自身, 0.0 不等于 -0.0."""
    assert CborFloat(math.nan) == CborFloat(math.nan)
    assert CborFloat(0.0) != CborFloat(-0.0)
    assert CborInteger(0) == CborFloat(0.0)
    assert CborInteger(0) != CborFloat(-0.0)


def test_float_widths_with_same_value_are_equal() -> None:
    """宽度不同但值相同的浮点相等."""
    assert CborFloat(1.5, FloatWidth.HALF) == CborFloat(1.5, FloatWidth.DOUBLE)


def test_numbers_not_equal_to_other_kinds() -> None:
    """数值与其他种类不相等."""
    assert CborInteger(1) != CborTextString("1")
    assert CborInteger(0) != FALSE
    assert CborInteger(1) != 1


# --- 文本串 ---


def test_text_from_invalid_utf8() -> None:
    """非法 UTF-8 被替换, 但原始字节保留用于重新编码."""
    item = CborTextString.from_utf8(b"\xff", tag=URI)

    assert item.value == "�"
    assert item.raw == b"\xff"
    assert item.tag == URI
    assert item.to_bytes() == b"\xd8\x20\x61\xff"


def test_text_equality_uses_value() -> None:
    """文本串比较解码后的文本."""
    assert CborTextString("é") == CborTextString.from_utf8("é".encode())
    assert CborTextString("a") != CborTextString("a", tag=URI)
    assert CborTextString("a") != CborByteString(b"a")


# --- 数组 ---


def test_array_stores_copies() -> None:
    """数组保存元素的深拷贝."""
    inner = CborArray([CborInteger(1)])
    outer = CborArray()
    outer.add(inner)
    inner.add(CborInteger(2))

    assert len(outer[0]) == 1
    assert len(inner) == 2


def test_array_add_self_does_not_create_cycle() -> None:
    """把数组加入自身只会加入一份拷贝."""
    array = CborArray([CborInteger(1)])
    array.add(array)

    assert len(array) == 2
    assert array[1] == CborArray([CborInteger(1)])
    assert array.to_diagnostic() == "[1,[1]]"


def test_array_mutators() -> None:
    """数组的增删改操作."""
    array = CborArray([CborInteger(1), CborInteger(2)])
    array.insert(0, CborInteger(0))
    array[2] = CborTextString("two")

    assert array.remove(CborInteger(1))
    assert not array.remove(CborInteger(42))
    assert list(array) == [CborInteger(0), CborTextString("two")]
    assert CborFloat(0.0) in array
    assert array.pop() == CborTextString("two")

    array.clear()
    assert len(array) == 0


def test_array_rejects_non_items() -> None:
    """数组只接受数据项."""
    with pytest.raises(CborTypeError):
        CborArray([1])  # type: ignore[list-item]


def test_array_equality_and_hash() -> None:
    """数组按标签和有序元素比较."""
    a = CborArray([CborInteger(1), CborInteger(2)])

    assert a == CborArray([CborFloat(1.0), CborInteger(2)])
    assert a != CborArray([CborInteger(2), CborInteger(1)])
    assert a != CborArray([CborInteger(1), CborInteger(2)], tag=55799)
    assert hash(a) == hash(a.copy())


# --- 映射 ---


def test_map_put_returns_previous() -> None:
    """put() 返回被覆盖的旧值."""
    mapping = CborMap()

    assert mapping.put("a", CborInteger(1)) is None
    assert mapping.put("a", CborInteger(2)) == CborInteger(1)
    assert mapping["a"] == CborInteger(2)


def test_map_keeps_first_key_position() -> None:
    """重复写入时保留原键的位置."""
    mapping = CborMap()
    mapping["a"] = CborInteger(1)
    mapping["b"] = CborInteger(2)
    mapping["a"] = CborInteger(3)

    assert mapping.text_keys() == ["a", "b"]
    assert list(mapping.values()) == [CborInteger(3), CborInteger(2)]


def test_map_numeric_key_equivalence() -> None:
    """数值等价的键视为同一个键."""
    mapping = CborMap()
    mapping.put(CborInteger(1), TRUE)

    assert mapping.get(CborFloat(1.0)) == TRUE
    assert CborFloat(1.0) in mapping
    assert mapping.get(CborFloat(1.5)) is None


def test_map_remove_and_clear() -> None:
    """remove() 返回被删除的值."""
    mapping = CborMap({"x": NULL, "y": UNDEFINED})

    assert mapping.remove("x") == NULL
    assert mapping.remove("x") is None
    assert len(mapping) == 1
    del mapping["y"]
    assert len(mapping) == 0

    mapping["z"] = TRUE
    mapping.clear()
    assert "z" not in mapping


def test_map_stores_copies() -> None:
    """映射保存键和值的深拷贝."""
    value = CborArray()
    mapping = CborMap({"v": value})
    value.add(CborInteger(1))

    assert len(mapping["v"]) == 0


def test_map_equality_ignores_order() -> None:
    """映射按条目集合比较, 与插入顺序无关."""
    a = CborMap([("a", CborInteger(1)), ("b", CborInteger(2))])
    b = CborMap([("b", CborInteger(2)), ("a", CborInteger(1))])

    assert a == b
    assert hash(a) == hash(b)
    assert a != CborMap([("a", CborInteger(1))])


def test_map_key_helpers(sample_map: CborMap) -> None:
    """all_keys_text() 与 text_keys()."""
    assert sample_map.all_keys_text()
    assert sample_map.text_keys() == ["int", "float", "bytes", "list", "flags"]

    sample_map.put(CborInteger(7), NULL)
    assert not sample_map.all_keys_text()


def test_map_text_keys_rejects_non_text() -> None:
    """存在非文本键时 text_keys() 报错, 不会丢弃键."""
    mapping = CborMap([(CborInteger(1), CborInteger(2)), ("a", CborInteger(3))])

    with pytest.raises(CborConversionError, match="not a text string"):
        mapping.text_keys()


def test_map_keys_hand_out_container_copies() -> None:
    """修改取出的容器键不会破坏映射中的条目."""
    mapping = CborMap([(CborArray([CborInteger(1)]), TRUE), ("a", NULL)])

    array_key, text_key = mapping.keys()
    array_key.add(CborInteger(2))
    for key, _ in mapping.items():
        if key.kind == Kind.ARRAY:
            key.clear()
    for key in mapping:
        if key.kind == Kind.ARRAY:
            key.add(NULL)

    assert text_key is mapping.keys()[1]
    assert mapping[CborArray([CborInteger(1)])] == TRUE
    assert CborArray([CborInteger(1), CborInteger(2)]) not in mapping


def test_map_rejects_bad_keys() -> None:
    """键必须是数据项或 str."""
    with pytest.raises(CborTypeError):
        CborMap().put(1, NULL)  # type: ignore[arg-type]


# --- 简单值 ---


def test_simple_interning() -> None:
    """无标签的简单值是共享实例."""
    assert CborSimple.create(20) is FALSE
    assert CborSimple.create(16) is CborSimple.create(16)
    assert CborSimple.create(16, tag=1) is not CborSimple.create(16)
    assert CborSimple.create(16, tag=1) == CborSimple(16, tag=1)


def test_simple_interning_thread_safe() -> None:
    """并发获取同一个简单值应得到同一个实例."""
    results: list[CborSimple] = []

    def worker() -> None:
        results.append(CborSimple.create(200))

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert all(r is results[0] for r in results)


# --- 诊断记法 ---


DIAGNOSTIC_CASES = [
    (CborInteger(-500), "-500"),
    (CborFloat(12345.0, FloatWidth.SINGLE), "12345.0_2"),
    (CborFloat(1.5), "1.5_3"),
    (CborFloat(1.0 / 3.0, FloatWidth.HALF), "0.33325195_1"),
    (CborFloat(math.inf, FloatWidth.HALF), "Infinity_1"),
    (CborFloat(-math.inf, FloatWidth.HALF), "-Infinity_1"),
    (CborFloat(math.nan, FloatWidth.HALF), "NaN_1"),
    (CborByteString(b"\x01\x02"), "h'0102'"),
    (CborTextString('a"b'), '"a\\"b"'),
    (CborTextString("x", tag=URI), '32("x")'),
    (TRUE, "true"),
    (NULL, "null"),
    (UNDEFINED, "undefined"),
    (CborSimple(16), "simple(16)"),
    (CborArray(), "[]"),
    (CborMap(), "{}"),
    (CborArray([CborInteger(1)], tag=55799), "55799([1])"),
]


@pytest.mark.parametrize(("item", "expected"), DIAGNOSTIC_CASES)
def test_diagnostic(item, expected: str) -> None:
    """单行诊断记法."""
    assert item.to_diagnostic() == expected
    assert str(item) == expected


def test_diagnostic_indented() -> None:
    """非负缩进时每层使用一个制表符."""
    array = CborArray([CborInteger(1), CborInteger(2)])

    assert array.to_diagnostic(0) == "[\n\t1,\n\t2\n]"


def test_diagnostic_nested_indent(nested_array: CborArray) -> None:
    """嵌套容器逐层缩进."""
    assert nested_array.to_diagnostic() == "[[[1]]]"
    assert nested_array.to_diagnostic(0) == "[\n\t[\n\t\t[\n\t\t\t1\n\t\t]\n\t]\n]"


def test_diagnostic_map_indented() -> None:
    """映射的缩进格式."""
    mapping = CborMap({"a": CborArray()})

    assert mapping.to_diagnostic(0) == '{\n\t"a":[]\n}'
    assert mapping.to_diagnostic() == '{"a":[]}'


def test_repr_contains_diagnostic() -> None:
    """repr() 包含类型名和诊断记法."""
    assert repr(CborInteger(500)) == "<CborInteger 500>"


# --- JSON 投影 ---


def test_json_non_text_map_key() -> None:
    """非文本键被引用为字符串, 此时不是合法 JSON."""
    mapping = CborMap()
    mapping.put(CborMap(), CborInteger(1))

    assert mapping.to_json() == '{"{}":1}'
    assert not mapping.is_valid_json()


def test_json_floats() -> None:
    """非有限浮点输出 null 且不合法."""
    assert CborFloat(math.inf).to_json() == "null"
    assert not CborFloat(math.nan).is_valid_json()
    assert CborFloat(1.5, FloatWidth.HALF).to_json() == "1.5"
    assert CborFloat(2.5).is_valid_json()


def test_json_byte_strings() -> None:
    """字节串只有带 22/23 号期望编码标签时才合法."""
    data = b"\x01\x02"

    assert CborByteString(data, tag=EXPECTED_BASE16).to_json() == '"0102"'
    assert CborByteString(data, tag=EXPECTED_BASE16).is_valid_json()
    assert CborByteString(data, tag=EXPECTED_BASE64).to_json() == '"AQI="'
    assert CborByteString(data, tag=EXPECTED_BASE64).is_valid_json()
    assert CborByteString(data).to_json() == '"AQI="'
    assert not CborByteString(data).is_valid_json()


def test_json_simple_values() -> None:
    """undefined 与 simple(n) 被引用为字符串."""
    assert TRUE.to_json() == "true"
    assert FALSE.is_valid_json()
    assert UNDEFINED.to_json() == '"undefined"'
    assert not UNDEFINED.is_valid_json()
    assert CborSimple(99).to_json() == '"simple(99)"'


def test_json_containers(sample_map: CborMap) -> None:
    """容器的 JSON 由子项拼接而成."""
    assert sample_map.to_json() == (
        '{"int":-42,"float":1.5,"bytes":"AAEC","list":[1,"two",null],'
        '"flags":[true,false]}'
    )
    # 未标注期望编码的字节串使整体不合法
    assert not sample_map.is_valid_json()
    assert CborArray([CborInteger(1), NULL]).is_valid_json()
