"""CBOR 数据项模块.

本模块定义了 CBOR 数据项的封闭类型族: 整数、浮点、字节串、文本串、
数组、映射和简单值. 每个数据项最多携带一个标签 (Tag).

数值相等性遵循 RFC 7049 第 3.6 节: 整数与浮点数在数值完全等价时相等,
并且哈希值与该规则保持一致.
"""

import abc
import base64
import json
import math
import struct
import threading
from collections.abc import Iterable, Iterator, Mapping
from enum import IntEnum
from typing import Any, ClassVar

from typing_extensions import Self

from .const import (
    EXPECTED_BASE16,
    EXPECTED_BASE64,
    EXTRA_1B,
    EXTRA_2B,
    EXTRA_4B,
    EXTRA_8B,
    INT64_MAX,
    INT64_MIN,
    SIMPLE_FALSE,
    SIMPLE_MAX,
    SIMPLE_NULL,
    SIMPLE_TRUE,
    SIMPLE_UNDEFINED,
    UNTAGGED,
    MajorType,
    is_reserved_simple,
    is_valid_tag,
)
from .exceptions import CborConversionError, CborTypeError, CborValueError
from .half import round_to_half, to_float32

_STRUCT_D = struct.Struct(">d")
_STRUCT_Q = struct.Struct(">Q")


class Kind(IntEnum):
    """数据项种类, 编解码器据此分派."""

    INTEGER = 0
    FLOAT = 1
    BYTE_STRING = 2
    TEXT_STRING = 3
    ARRAY = 4
    MAP = 5
    SIMPLE = 6


class FloatWidth(IntEnum):
    """浮点宽度标记, 取值即线格式中的附加信息."""

    HALF = EXTRA_2B
    SINGLE = EXTRA_4B
    DOUBLE = EXTRA_8B


def double_bits(value: float) -> int:
    """返回 float 的原始 64 位模式."""
    return _STRUCT_Q.unpack(_STRUCT_D.pack(value))[0]


def trunc_int64(value: float) -> int:
    """把 float 截断为有符号 64 位整数.

    向零截断, 超出范围时饱和, NaN 映射为 0.
    """
    if math.isnan(value):
        return 0
    if value >= 2.0**63:
        return INT64_MAX
    if value <= -(2.0**63):
        return INT64_MIN
    return int(value)


def info_for_operand(operand: int) -> int:
    """返回能容纳 operand 的最短附加信息编码."""
    if operand < EXTRA_1B:
        return operand
    if operand <= 0xFF:
        return EXTRA_1B
    if operand <= 0xFFFF:
        return EXTRA_2B
    if operand <= 0xFFFFFFFF:
        return EXTRA_4B
    return EXTRA_8B


def _check_tag(tag: Any) -> int:
    if isinstance(tag, bool) or not isinstance(tag, int):
        raise CborTypeError(f"Tag must be int, got {type(tag).__name__}")
    if not is_valid_tag(tag):
        raise CborValueError(f"Invalid tag value: {tag}")
    return tag


def _format_float(value: float, width: "FloatWidth") -> str:
    """格式化浮点数, 半精度与单精度按单精度的最短表示输出."""
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"

    if width == FloatWidth.DOUBLE:
        return repr(value)

    for precision in range(1, 10):
        text = f"{value:.{precision}g}"
        if to_float32(float(text)) == value:
            break
    return repr(float(text))


def _with_tag(tag: int, body: str) -> str:
    return body if tag == UNTAGGED else f"{tag}({body})"


class CborItem(abc.ABC):
    """所有 CBOR 数据项的基类.

    数据项是一个封闭的类型族, 由 `kind` 区分. 标签在构造时校验,
    范围为 [-1, 2**31-1], 其中 -1 (UNTAGGED) 表示无标签.
    """

    __slots__ = ("_tag",)

    kind: ClassVar[Kind]

    def __init__(self, tag: int = UNTAGGED):
        self._tag = _check_tag(tag)

    @classmethod
    def __get_pydantic_core_schema__(cls, source_type: Any, handler: Any) -> Any:
        from pydantic_core import core_schema

        return core_schema.is_instance_schema(cls)

    @property
    def tag(self) -> int:
        """标签值, 无标签时为 UNTAGGED."""
        return self._tag

    @property
    def is_tagged(self) -> bool:
        return self._tag != UNTAGGED

    @property
    @abc.abstractmethod
    def major_type(self) -> MajorType:
        """编码时使用的主类型."""

    @property
    def additional_info(self) -> int:
        """编码时头字节的低 5 位."""
        return info_for_operand(self._operand())

    @abc.abstractmethod
    def _operand(self) -> int:
        """头字节携带的操作数 (值, 长度或元素个数)."""

    def copy(self) -> Self:
        """返回深拷贝, 不可变类型返回自身."""
        return self

    @abc.abstractmethod
    def is_valid_json(self) -> bool:
        """该数据项能否无损地表示为 JSON."""

    @abc.abstractmethod
    def to_json(self) -> str:
        """返回 JSON 文本表示.

        无法表示为 JSON 的部分使用替代值, 此时 `is_valid_json()` 为 False.
        """

    def to_diagnostic(self, indent: int = -1) -> str:
        """返回诊断记法 (RFC 7049 第 6 节) 文本.

        Args:
            indent: 非负时按制表符缩进换行, 数值为起始层级; 负数输出单行.
        """
        return _with_tag(self._tag, self._diagnostic_body(indent))

    @abc.abstractmethod
    def _diagnostic_body(self, indent: int) -> str:
        pass

    def to_python(self) -> Any:
        """转换为 Python 原生对象."""
        from .adapter import to_python

        return to_python(self)

    def to_bytes(self) -> bytes:
        """编码为 CBOR 字节."""
        from .api import dumps

        return dumps(self)

    @classmethod
    def from_bytes(cls, data: bytes | bytearray | memoryview) -> "CborItem":
        """从 CBOR 字节解码恰好一个数据项."""
        from .api import loads

        return loads(data)

    def __str__(self) -> str:
        return self.to_diagnostic()

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.to_diagnostic()}>"


class _CborNumber(CborItem):
    """整数与浮点的公共基类, 实现跨类型的数值相等性."""

    __slots__ = ()

    @property
    @abc.abstractmethod
    def float_value(self) -> float:
        pass

    @property
    @abc.abstractmethod
    def int_value(self) -> int:
        pass

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, _CborNumber):
            return NotImplemented
        if self._tag != other._tag:
            return False
        if isinstance(self, CborFloat) and isinstance(other, CborFloat):
            return double_bits(self._value) == double_bits(other._value)
        if isinstance(self, CborInteger) and isinstance(other, CborInteger):
            return self._value == other._value
        return self.int_value == other.int_value and double_bits(
            self.float_value
        ) == double_bits(other.float_value)

    def __hash__(self) -> int:
        return hash((self._tag, double_bits(self.float_value), self.int_value))


class CborInteger(_CborNumber):
    """有符号 64 位整数.

    可选记录产生它的主类型 (无符号或负整数), 该主类型必须与数值符号一致.
    """

    __slots__ = ("_major", "_value")

    kind = Kind.INTEGER

    def __init__(
        self,
        value: int,
        tag: int = UNTAGGED,
        major_type: MajorType | None = None,
    ):
        super().__init__(tag)
        if isinstance(value, bool) or not isinstance(value, int):
            raise CborTypeError(f"Expected int, got {type(value).__name__}")
        if not INT64_MIN <= value <= INT64_MAX:
            raise CborValueError(f"Integer out of 64-bit range: {value}")

        if major_type is not None:
            major_type = MajorType(major_type)
            expected = (
                MajorType.UNSIGNED_INT if value >= 0 else MajorType.NEGATIVE_INT
            )
            if major_type != expected:
                raise CborValueError(
                    f"Major type {major_type.name} does not match value {value}"
                )
        self._value = value
        self._major = major_type

    @property
    def value(self) -> int:
        return self._value

    @property
    def int_value(self) -> int:
        return self._value

    @property
    def float_value(self) -> float:
        return float(self._value)

    @property
    def major_type(self) -> MajorType:
        if self._major is not None:
            return self._major
        return MajorType.UNSIGNED_INT if self._value >= 0 else MajorType.NEGATIVE_INT

    def _operand(self) -> int:
        return self._value if self._value >= 0 else -self._value - 1

    def is_valid_json(self) -> bool:
        return True

    def to_json(self) -> str:
        return str(self._value)

    def _diagnostic_body(self, indent: int) -> str:
        return str(self._value)

    def __int__(self) -> int:
        return self._value

    def __index__(self) -> int:
        return self._value


class CborFloat(_CborNumber):
    """浮点数, 带有半精度/单精度/双精度宽度标记.

    构造时把值舍入到对应宽度, 因此重新编码不会丢失信息.
    """

    __slots__ = ("_value", "_width")

    kind = Kind.FLOAT

    def __init__(
        self,
        value: float,
        width: FloatWidth = FloatWidth.DOUBLE,
        tag: int = UNTAGGED,
    ):
        super().__init__(tag)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise CborTypeError(f"Expected float, got {type(value).__name__}")
        try:
            width = FloatWidth(width)
        except ValueError:
            raise CborValueError(f"Invalid float width: {width}") from None

        try:
            value = float(value)
        except OverflowError as e:
            raise CborValueError("Integer too large to convert to float") from e
        if width == FloatWidth.HALF:
            value = round_to_half(value)
        elif width == FloatWidth.SINGLE:
            value = to_float32(value)
        self._value = value
        self._width = width

    @property
    def value(self) -> float:
        return self._value

    @property
    def width(self) -> FloatWidth:
        return self._width

    @property
    def int_value(self) -> int:
        return trunc_int64(self._value)

    @property
    def float_value(self) -> float:
        return self._value

    @property
    def major_type(self) -> MajorType:
        return MajorType.OTHER

    @property
    def additional_info(self) -> int:
        return int(self._width)

    def _operand(self) -> int:
        return int(self._width)

    def is_valid_json(self) -> bool:
        return math.isfinite(self._value)

    def to_json(self) -> str:
        if not self.is_valid_json():
            # JSON 没有 NaN 和无穷大, 用 null 代替
            return "null"
        return _format_float(self._value, self._width)

    def _diagnostic_body(self, indent: int) -> str:
        return f"{_format_float(self._value, self._width)}_{self._width - EXTRA_1B}"

    def __float__(self) -> float:
        return self._value


class CborByteString(CborItem):
    """不可变的字节串."""

    __slots__ = ("_value",)

    kind = Kind.BYTE_STRING

    def __init__(self, value: bytes | bytearray | memoryview, tag: int = UNTAGGED):
        super().__init__(tag)
        if not isinstance(value, (bytes, bytearray, memoryview)):
            raise CborTypeError(f"Expected bytes, got {type(value).__name__}")
        self._value = bytes(value)

    @property
    def value(self) -> bytes:
        return self._value

    @property
    def major_type(self) -> MajorType:
        return MajorType.BYTE_STRING

    def _operand(self) -> int:
        return len(self._value)

    def is_valid_json(self) -> bool:
        return self._tag in (EXPECTED_BASE64, EXPECTED_BASE16)

    def to_json(self) -> str:
        if self._tag == EXPECTED_BASE16:
            return f'"{self._value.hex()}"'
        return f'"{base64.b64encode(self._value).decode("ascii")}"'

    def _diagnostic_body(self, indent: int) -> str:
        return f"h'{self._value.hex()}'"

    def __len__(self) -> int:
        return len(self._value)

    def __bytes__(self) -> bytes:
        return self._value

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CborItem):
            return NotImplemented
        return (
            isinstance(other, CborByteString)
            and self._tag == other._tag
            and self._value == other._value
        )

    def __hash__(self) -> int:
        return hash((self._tag, self._value))


class CborTextString(CborItem):
    """不可变的文本串.

    保存原始 UTF-8 字节用于重新编码, 比较时使用解码后的文本.
    """

    __slots__ = ("_raw", "_value")

    kind = Kind.TEXT_STRING

    def __init__(self, value: str, tag: int = UNTAGGED):
        super().__init__(tag)
        if not isinstance(value, str):
            raise CborTypeError(f"Expected str, got {type(value).__name__}")
        try:
            self._raw = value.encode("utf-8")
        except UnicodeEncodeError as e:
            raise CborValueError(f"Text is not encodable as UTF-8: {e}") from e
        self._value = value

    @classmethod
    def from_utf8(
        cls, raw: bytes | bytearray | memoryview, tag: int = UNTAGGED
    ) -> "CborTextString":
        """从原始字节构造, 非法的 UTF-8 序列替换为 U+FFFD.

        原始字节原样保留, 重新编码时输出相同的字节.
        """
        item = cls.__new__(cls)
        CborItem.__init__(item, tag)
        item._raw = bytes(raw)
        item._value = item._raw.decode("utf-8", errors="replace")
        return item

    @property
    def value(self) -> str:
        return self._value

    @property
    def raw(self) -> bytes:
        """编码时写出的原始字节."""
        return self._raw

    @property
    def major_type(self) -> MajorType:
        return MajorType.TEXT_STRING

    def _operand(self) -> int:
        return len(self._raw)

    def is_valid_json(self) -> bool:
        return True

    def to_json(self) -> str:
        return json.dumps(self._value, ensure_ascii=False)

    def _diagnostic_body(self, indent: int) -> str:
        return self.to_json()

    def __len__(self) -> int:
        return len(self._value)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CborItem):
            return NotImplemented
        return (
            isinstance(other, CborTextString)
            and self._tag == other._tag
            and self._value == other._value
        )

    def __hash__(self) -> int:
        return hash((self._tag, self._value))


def _coerce_item(value: Any) -> CborItem:
    if isinstance(value, CborItem):
        return value.copy()
    raise CborTypeError(f"Expected CborItem, got {type(value).__name__}")


def _coerce_key(key: Any) -> CborItem:
    # 裸 str 视为无标签文本串
    if isinstance(key, str):
        return CborTextString(key)
    if isinstance(key, CborItem):
        return key
    raise CborTypeError(f"Expected CborItem or str key, got {type(key).__name__}")


def _indent_child(indent: int) -> tuple[int, str]:
    if indent < 0:
        return indent, ""
    return indent + 1, "\n" + "\t" * (indent + 1)


class CborArray(CborItem):
    """有序的数据项数组.

    数组拥有其元素: 构造和每次写入都保存一份深拷贝, 因此不会形成环.
    """

    __slots__ = ("_items",)

    kind = Kind.ARRAY

    def __init__(self, items: Iterable[CborItem] = (), tag: int = UNTAGGED):
        super().__init__(tag)
        self._items: list[CborItem] = [_coerce_item(x) for x in items]

    @property
    def major_type(self) -> MajorType:
        return MajorType.ARRAY

    def _operand(self) -> int:
        return len(self._items)

    def _append_owned(self, item: CborItem) -> None:
        # 解码器专用: item 是新建的, 不需要拷贝
        self._items.append(item)

    def copy(self) -> Self:
        clone = CborArray(tag=self._tag)
        clone._items = [x.copy() for x in self._items]
        return clone

    def add(self, item: CborItem) -> None:
        """在末尾追加一个元素."""
        self._items.append(_coerce_item(item))

    def insert(self, index: int, item: CborItem) -> None:
        self._items.insert(index, _coerce_item(item))

    def remove(self, item: CborItem) -> bool:
        """移除第一个相等的元素, 返回是否找到."""
        try:
            self._items.remove(item)
        except ValueError:
            return False
        return True

    def pop(self, index: int = -1) -> CborItem:
        return self._items.pop(index)

    def clear(self) -> None:
        self._items.clear()

    def __getitem__(self, index: int) -> CborItem:
        return self._items[index]

    def __setitem__(self, index: int, item: CborItem) -> None:
        self._items[index] = _coerce_item(item)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[CborItem]:
        return iter(self._items)

    def __contains__(self, item: object) -> bool:
        return item in self._items

    def is_valid_json(self) -> bool:
        return all(x.is_valid_json() for x in self._items)

    def to_json(self) -> str:
        return "[" + ",".join(x.to_json() for x in self._items) + "]"

    def _diagnostic_body(self, indent: int) -> str:
        child_indent, prefix = _indent_child(indent)
        body = ",".join(prefix + x.to_diagnostic(child_indent) for x in self._items)
        if self._items and indent >= 0:
            body += "\n" + "\t" * indent
        return "[" + body + "]"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CborItem):
            return NotImplemented
        return (
            isinstance(other, CborArray)
            and self._tag == other._tag
            and self._items == other._items
        )

    def __hash__(self) -> int:
        return hash((self._tag, tuple(self._items)))


class CborMap(CborItem):
    """数据项到数据项的映射.

    保持插入顺序. 键按结构相等比较, 重复写入时保留原键的位置并覆盖值.
    与数组一样, 映射拥有其键和值的深拷贝.
    """

    __slots__ = ("_entries",)

    kind = Kind.MAP

    def __init__(
        self,
        entries: Mapping[Any, CborItem] | Iterable[tuple[Any, CborItem]] = (),
        tag: int = UNTAGGED,
    ):
        super().__init__(tag)
        self._entries: dict[CborItem, CborItem] = {}
        pairs = entries.items() if isinstance(entries, Mapping) else entries
        for key, value in pairs:
            self.put(key, value)

    @property
    def major_type(self) -> MajorType:
        return MajorType.MAP

    def _operand(self) -> int:
        return len(self._entries)

    def _put_owned(self, key: CborItem, value: CborItem) -> None:
        # 解码器专用: 键值都是新建的, 不需要拷贝
        self._entries[key] = value

    def copy(self) -> Self:
        clone = CborMap(tag=self._tag)
        clone._entries = {k.copy(): v.copy() for k, v in self._entries.items()}
        return clone

    def put(self, key: CborItem | str, value: CborItem) -> CborItem | None:
        """写入键值对, 返回被覆盖的旧值 (没有则为 None)."""
        key = _coerce_key(key).copy()
        value = _coerce_item(value)
        previous = self._entries.get(key)
        self._entries[key] = value
        return previous

    def get(self, key: CborItem | str, default: Any = None) -> Any:
        return self._entries.get(_coerce_key(key), default)

    def remove(self, key: CborItem | str) -> CborItem | None:
        """删除键, 返回被删除的值 (没有则为 None)."""
        return self._entries.pop(_coerce_key(key), None)

    def clear(self) -> None:
        self._entries.clear()

    def keys(self) -> list[CborItem]:
        """按插入顺序返回所有键.

        数组和映射作为键时返回的是拷贝: 就地修改已存入的键会改变其哈希,
        使映射无法再找到该条目. 不可变的键直接返回原对象.
        """
        return [k.copy() for k in self._entries]

    def values(self):
        return self._entries.values()

    def items(self) -> list[tuple[CborItem, CborItem]]:
        """按插入顺序返回 (键, 值) 对, 键的拷贝规则同 `keys()`."""
        return [(k.copy(), v) for k, v in self._entries.items()]

    def all_keys_text(self) -> bool:
        """所有键是否都是文本串."""
        return all(isinstance(k, CborTextString) for k in self._entries)

    def text_keys(self) -> list[str]:
        """以 str 形式返回所有键.

        Raises:
            CborConversionError: 存在不是文本串的键.
        """
        for key in self._entries:
            if not isinstance(key, CborTextString):
                raise CborConversionError(f"Key is not a text string: {key}")
        return [k.value for k in self._entries]

    def __getitem__(self, key: CborItem | str) -> CborItem:
        return self._entries[_coerce_key(key)]

    def __setitem__(self, key: CborItem | str, value: CborItem) -> None:
        self.put(key, value)

    def __delitem__(self, key: CborItem | str) -> None:
        del self._entries[_coerce_key(key)]

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[CborItem]:
        return iter(self.keys())

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, (str, CborItem)):
            return False
        return _coerce_key(key) in self._entries

    def is_valid_json(self) -> bool:
        return all(
            isinstance(k, CborTextString) and v.is_valid_json()
            for k, v in self._entries.items()
        )

    def to_json(self) -> str:
        parts = []
        for key, value in self._entries.items():
            if isinstance(key, CborTextString):
                key_text = key.to_json()
            else:
                # 非文本键: 把键的 JSON 文本再作为字符串引用
                key_text = json.dumps(key.to_json(), ensure_ascii=False)
            parts.append(f"{key_text}:{value.to_json()}")
        return "{" + ",".join(parts) + "}"

    def _diagnostic_body(self, indent: int) -> str:
        child_indent, prefix = _indent_child(indent)
        body = ",".join(
            f"{prefix}{k.to_diagnostic(child_indent)}:{v.to_diagnostic(child_indent)}"
            for k, v in self._entries.items()
        )
        if self._entries and indent >= 0:
            body += "\n" + "\t" * indent
        return "{" + body + "}"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CborItem):
            return NotImplemented
        return (
            isinstance(other, CborMap)
            and self._tag == other._tag
            and self._entries == other._entries
        )

    def __hash__(self) -> int:
        return hash((self._tag, frozenset(self._entries.items())))


class CborSimple(CborItem):
    """简单值 (主类型 7): false, true, null, undefined 以及 simple(n).

    无标签的简单值通过 `create()` 获取进程级的单例.
    """

    __slots__ = ("_value",)

    kind = Kind.SIMPLE

    _interned: ClassVar[dict[int, "CborSimple"]] = {}
    _intern_lock: ClassVar[threading.Lock] = threading.Lock()

    _NAMES: ClassVar[dict[int, str]] = {
        SIMPLE_FALSE: "false",
        SIMPLE_TRUE: "true",
        SIMPLE_NULL: "null",
        SIMPLE_UNDEFINED: "undefined",
    }

    def __init__(self, value: int, tag: int = UNTAGGED):
        super().__init__(tag)
        if isinstance(value, bool) or not isinstance(value, int):
            raise CborTypeError(f"Expected int, got {type(value).__name__}")
        if not 0 <= value <= SIMPLE_MAX:
            raise CborValueError(f"Simple value out of range: {value}")
        if is_reserved_simple(value):
            raise CborValueError(f"Simple value {value} is reserved")
        self._value = value

    @classmethod
    def create(cls, value: int, tag: int = UNTAGGED) -> "CborSimple":
        """获取简单值, 无标签时返回共享实例."""
        if tag != UNTAGGED:
            return cls(value, tag)
        item = cls._interned.get(value)
        if item is None:
            with cls._intern_lock:
                item = cls._interned.get(value)
                if item is None:
                    item = cls(value)
                    cls._interned[value] = item
        return item

    @property
    def value(self) -> int:
        return self._value

    @property
    def major_type(self) -> MajorType:
        return MajorType.OTHER

    def _operand(self) -> int:
        return self._value

    def is_valid_json(self) -> bool:
        return self._value in (SIMPLE_FALSE, SIMPLE_TRUE, SIMPLE_NULL)

    def to_json(self) -> str:
        if self.is_valid_json():
            return self._NAMES[self._value]
        # 加引号以便 JSON 仍然可以解析
        return f'"{self._diagnostic_body(-1)}"'

    def _diagnostic_body(self, indent: int) -> str:
        return self._NAMES.get(self._value, f"simple({self._value})")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CborItem):
            return NotImplemented
        return (
            isinstance(other, CborSimple)
            and self._tag == other._tag
            and self._value == other._value
        )

    def __hash__(self) -> int:
        return hash((self._tag, self._value))


FALSE = CborSimple.create(SIMPLE_FALSE)
TRUE = CborSimple.create(SIMPLE_TRUE)
NULL = CborSimple.create(SIMPLE_NULL)
UNDEFINED = CborSimple.create(SIMPLE_UNDEFINED)
