"""CBOR 与 Python 对象之间的转换.

提供 `from_python` / `to_python` 在数据项与原生对象之间转换,
`from_json` 从 JSON 文本构造数据项,
以及类似于 Pydantic TypeAdapter 的 `CborTypeAdapter`.
"""

import json
from collections.abc import Iterable, Mapping
from datetime import date, datetime, timezone
from typing import Any, Generic, TypeVar

from pydantic import AnyUrl, TypeAdapter

from .const import (
    BIGNUM_NEG,
    BIGNUM_POS,
    CBOR_DATA_ITEM,
    INT64_MAX,
    INT64_MIN,
    SIMPLE_FALSE,
    SIMPLE_TRUE,
    TIME_DATE_STRING,
    TIMESTAMP_UNIX,
    URI,
)
from .exceptions import CborConversionError, CborError
from .options import CborOption
from .types import (
    FALSE,
    NULL,
    TRUE,
    CborArray,
    CborByteString,
    CborFloat,
    CborInteger,
    CborItem,
    CborMap,
    CborTextString,
    Kind,
)

T = TypeVar("T")


def _bignum(value: int) -> CborByteString:
    """把任意大小的 int 编码为 bignum 字节串 (标签 2 或 3).

    负数按 RFC 7049 第 2.4.2 节存储 -1 - n, 例如 -(2**64) 存为 8 个 0xFF.
    只存储绝对值 (符号加幅度) 的实现与此不兼容, 双方交换负 bignum 时会差 1.
    """
    if value < 0:
        tag, magnitude = BIGNUM_NEG, -1 - value
    else:
        tag, magnitude = BIGNUM_POS, value
    length = (magnitude.bit_length() + 7) // 8
    return CborByteString(magnitude.to_bytes(length, "big"), tag)


def from_python(obj: Any) -> CborItem:
    """把 Python 对象转换为数据项.

    转换规则:
        - `None` -> null, `bool` -> true/false.
        - `int` -> 整数; 超出 64 位时使用 bignum 标签 (2/3) 的字节串.
        - `float` -> 双精度浮点.
        - `str` -> 文本串, `bytes`/`bytearray`/`memoryview` -> 字节串.
        - `datetime`/`date` -> 带标签 0 的 ISO 8601 文本.
        - `pydantic.AnyUrl` -> 带标签 32 的文本.
        - `CborItem` -> 其编码, 作为带标签 24 的字节串.
        - `Mapping` -> 映射, 其他可迭代对象 -> 数组.

    Raises:
        CborConversionError: 不支持的类型.
    """
    if obj is None:
        return NULL
    if isinstance(obj, CborItem):
        return CborByteString(obj.to_bytes(), CBOR_DATA_ITEM)
    if isinstance(obj, bool):
        return TRUE if obj else FALSE
    if isinstance(obj, int):
        if INT64_MIN <= obj <= INT64_MAX:
            return CborInteger(obj)
        return _bignum(obj)
    if isinstance(obj, float):
        return CborFloat(obj)
    if isinstance(obj, str):
        return CborTextString(obj)
    if isinstance(obj, (bytes, bytearray, memoryview)):
        return CborByteString(obj)
    if isinstance(obj, (datetime, date)):
        return CborTextString(obj.isoformat(), TIME_DATE_STRING)
    if isinstance(obj, AnyUrl):
        return CborTextString(str(obj), URI)
    if isinstance(obj, Mapping):
        result = CborMap()
        for key, value in obj.items():
            result._put_owned(from_python(key), from_python(value))
        return result
    if isinstance(obj, Iterable):
        result = CborArray()
        for value in obj:
            result._append_owned(from_python(value))
        return result

    raise CborConversionError(
        f'Unable to convert Python type "{type(obj).__name__}" to CborItem'
    )


def _freeze_key(obj: Any) -> Any:
    """将可变对象转换为不可变对象以用作字典键."""
    if isinstance(obj, dict):
        return tuple((k, _freeze_key(v)) for k, v in obj.items())
    if isinstance(obj, list):
        return tuple(_freeze_key(x) for x in obj)
    return obj


def _parse_datetime(text: str) -> datetime:
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


def _parse_timestamp(value: float) -> datetime:
    try:
        return datetime.fromtimestamp(value, tz=timezone.utc)
    except (OverflowError, OSError, ValueError) as e:
        raise CborConversionError(f"Invalid epoch timestamp {value}: {e}") from e


def to_python(item: CborItem) -> Any:
    """把数据项转换为 Python 对象.

    带语义标签的数据项会被解释: bignum 转为 int, 标签 0/1 转为 datetime,
    标签 24 的字节串解码为内嵌的数据项. 其他标签被忽略.

    Raises:
        CborConversionError: 带标签的数据无法按标签语义解释.
    """
    kind = item.kind
    tag = item.tag

    if kind in (Kind.INTEGER, Kind.FLOAT):
        if tag == TIMESTAMP_UNIX:
            return _parse_timestamp(item.value)
        return item.value

    if kind == Kind.BYTE_STRING:
        if tag == BIGNUM_POS:
            return int.from_bytes(item.value, "big")
        if tag == BIGNUM_NEG:
            # -1 - n, 与 _bignum 对称; 不接受只存绝对值的负 bignum
            return -1 - int.from_bytes(item.value, "big")
        if tag == CBOR_DATA_ITEM:
            from .api import loads

            try:
                return loads(item.value)
            except CborError as e:
                raise CborConversionError(
                    f"Invalid embedded CBOR data item: {e}"
                ) from e
        return item.value

    if kind == Kind.TEXT_STRING:
        if tag == TIME_DATE_STRING:
            try:
                return _parse_datetime(item.value)
            except ValueError as e:
                raise CborConversionError(f"Invalid date/time string: {e}") from e
        return item.value

    if kind == Kind.ARRAY:
        return [to_python(x) for x in item]

    if kind == Kind.MAP:
        return {_freeze_key(to_python(k)): to_python(v) for k, v in item.items()}

    if kind == Kind.SIMPLE:
        if item.value == SIMPLE_TRUE:
            return True
        if item.value == SIMPLE_FALSE:
            return False
        return None

    raise CborConversionError(f"Cannot convert item of kind {kind!r}")


def _from_json_value(value: Any) -> CborItem:
    if value is None:
        return NULL
    if isinstance(value, dict):
        result = CborMap()
        for key, child in value.items():
            result._put_owned(CborTextString(key), _from_json_value(child))
        return result
    if isinstance(value, list):
        result = CborArray()
        for child in value:
            result._append_owned(_from_json_value(child))
        return result
    return from_python(value)


def from_json(text: str | bytes) -> CborItem:
    """从 JSON 文本构造数据项.

    JSON 数字中的整数转换为整数, 其余转换为双精度浮点.

    Raises:
        CborConversionError: JSON 文本无效.
    """
    try:
        value = json.loads(text)
    except ValueError as e:
        raise CborConversionError(f"Invalid JSON: {e}") from e
    return _from_json_value(value)


class CborTypeAdapter(Generic[T]):
    """CBOR 类型适配器.

    用于把 CBOR 数据验证为任意 Pydantic 支持的类型,
    类似于 `pydantic.TypeAdapter`, 但针对 CBOR.

    Examples:
        >>> adapter = CborTypeAdapter(list[int])
        >>> data = adapter.dump_cbor([1, 2, 3])
        >>> assert adapter.validate_cbor(data) == [1, 2, 3]
    """

    def __init__(self, type_: type[T] | Any):
        """初始化 CBOR 类型适配器.

        Args:
            type_: 目标类型 (如 BaseModel 子类, list[int], int 等).
        """
        self._type = type_
        self._pydantic_adapter = TypeAdapter(type_)

    @property
    def type(self) -> Any:
        return self._type

    def validate_item(self, item: CborItem) -> T:
        """验证已解码的数据项."""
        return self._pydantic_adapter.validate_python(to_python(item))

    def validate_cbor(
        self,
        data: bytes | bytearray | memoryview,
        *,
        option: CborOption = CborOption.NONE,
    ) -> T:
        """验证并反序列化 CBOR 数据.

        Args:
            data: CBOR 字节数据, 必须恰好包含一个数据项.
            option: CBOR 选项.

        Returns:
            反序列化后的对象.

        Raises:
            CborParseError: 数据格式错误.
            pydantic.ValidationError: 数据不符合目标类型.
        """
        from .api import loads

        return self.validate_item(loads(data, option=CborOption(option)))

    def dump_cbor(self, obj: T, *, option: CborOption = CborOption.NONE) -> bytes:
        """序列化为 CBOR 数据."""
        from .api import dumps

        value = self._pydantic_adapter.dump_python(obj, mode="python")
        return dumps(value, option=CborOption(option))


__all__ = [
    "CborTypeAdapter",
    "from_json",
    "from_python",
    "to_python",
]
