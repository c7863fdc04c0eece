"""cborkit API模块.

提供用于 CBOR 编解码的高级接口 `dumps`, `loads`, `dump`, `load`
以及读取 CBOR 序列的 `iter_loads`.
支持 CborItem 数据项以及普通 Python 类型的编解码.
"""

from collections.abc import Iterator
from typing import IO, Any, TypeVar, overload

from .buffer import DataReader, FixedWriter, IOReader, IOWriter
from .config import CborConfig
from .decoder import CborDecoder
from .encoder import CborEncoder, encoded_length
from .exceptions import CborParseError
from .log import get_hexdump, logger
from .options import CborOption
from .types import CborItem

T = TypeVar("T")


def _to_item(obj: Any) -> CborItem:
    if isinstance(obj, CborItem):
        return obj
    from .adapter import from_python

    return from_python(obj)


def _validate(item: CborItem, target: Any) -> Any:
    from .adapter import CborTypeAdapter

    return CborTypeAdapter(target).validate_item(item)


def dumps(obj: Any, option: CborOption = CborOption.NONE) -> bytes:
    """序列化对象为 CBOR 字节.

    Args:
        obj: 要序列化的对象.
            - `CborItem`: 按数据项原样编码 (保留标签、浮点宽度).
            - 其他 Python 对象: 先经 `cborkit.adapter.from_python` 转换.
        option: 序列化选项 (编码目前不受选项影响).

    Returns:
        bytes: 序列化后的 CBOR 字节.

    Raises:
        CborConversionError: 对象无法转换为数据项.

    Examples:
        >>> dumps(CborInteger(500)).hex()
        '1901f4'
        >>> dumps({"a": [1, 2]}).hex()
        'a16161820102'
    """
    item = _to_item(obj)
    # 先计算长度, 一次分配输出缓冲区
    writer = FixedWriter(encoded_length(item))
    CborEncoder(writer).encode(item)
    return writer.get_bytes()


def dump(obj: Any, fp: IO[bytes], option: CborOption = CborOption.NONE) -> None:
    """序列化对象为 CBOR 字节并写入文件.

    Args:
        obj: 要序列化的对象.
        fp: 支持 `.write(bytes)` 的文件类对象.
        option: 序列化选项.

    Raises:
        CborIOError: 写入文件失败.
    """
    CborEncoder(IOWriter(fp)).encode(_to_item(obj))


@overload
def loads(
    data: bytes | bytearray | memoryview,
    target: None = None,
    option: CborOption = CborOption.NONE,
    *,
    max_depth: int | None = None,
) -> CborItem: ...


@overload
def loads(
    data: bytes | bytearray | memoryview,
    target: type[T],
    option: CborOption = CborOption.NONE,
    *,
    max_depth: int | None = None,
) -> T: ...


def loads(
    data: bytes | bytearray | memoryview,
    target: Any = None,
    option: CborOption = CborOption.NONE,
    *,
    max_depth: int | None = None,
) -> Any:
    """反序列化 CBOR 字节中的单个数据项.

    Args:
        data: 输入的二进制数据 (bytes, bytearray 或 memoryview).
        target: 目标类型.
            - `None` (默认): 返回 `CborItem` 数据项.
            - 其他类型: 数据项先转换为 Python 对象, 再由 pydantic 验证为该类型.
        option: 反序列化选项.
            - `CborOption.ALLOW_TRAILING_DATA`: 允许数据项后留有多余字节.
            - `CborOption.STRICT_TAGS`: 无效标签直接报错.
        max_depth: 最大嵌套深度, None 表示不限制.

    Returns:
        CborItem: 解码出的数据项 (如果 target=None).
        T: 目标类型实例 (如果指定了 target).

    Raises:
        CborParseError: 数据格式错误, 为空, 或者数据项之后有多余字节.
        CborPartialDataError: 数据不完整.
        pydantic.ValidationError: 数据无法验证为 target.

    Examples:
        >>> loads(bytes.fromhex("1901f4"))
        <CborInteger 500>
        >>> loads(bytes.fromhex("83010203"), list[int])
        [1, 2, 3]
    """
    config = CborConfig.from_params(option, max_depth)
    reader = DataReader(data)
    decoder = CborDecoder(reader, count=1, config=config)

    logger.debug("[loads] 开始解码 %d 字节", reader.length)
    try:
        if not reader.has_remaining():
            raise CborParseError("No data to decode", 0)
        item = decoder.read_item()
        if reader.has_remaining() and not config.allow_trailing_data:
            raise CborParseError(
                "Extra data at end of data item "
                f"(parsed only {reader.bytes_consumed} of {reader.length} bytes)",
                reader.bytes_consumed,
            )
    except CborParseError as e:
        pos = reader.bytes_consumed if e.offset is None else e.offset
        logger.error("[loads] 解码错误: %s\n%s", e, get_hexdump(data, pos))
        raise

    if target is None:
        return item
    return _validate(item, target)


@overload
def load(
    fp: IO[bytes],
    target: None = None,
    option: CborOption = CborOption.NONE,
    *,
    max_depth: int | None = None,
) -> CborItem: ...


@overload
def load(
    fp: IO[bytes],
    target: type[T],
    option: CborOption = CborOption.NONE,
    *,
    max_depth: int | None = None,
) -> T: ...


def load(
    fp: IO[bytes],
    target: Any = None,
    option: CborOption = CborOption.NONE,
    *,
    max_depth: int | None = None,
) -> Any:
    """从文件读取一个 CBOR 数据项.

    只消费该数据项占用的字节, 文件中之后的内容保持未读 (除一个字节的预读外).

    Args:
        fp: 支持 `.read(size)` 的二进制文件类对象.
        target: 目标类型, 含义同 `loads`.
        option: 反序列化选项.
        max_depth: 最大嵌套深度.

    Returns:
        CborItem | T: 解码结果.

    Raises:
        CborParseError: 数据格式错误或文件为空.
    """
    config = CborConfig.from_params(option, max_depth)
    reader = IOReader(fp)
    if not reader.has_remaining():
        raise CborParseError("No data to decode", 0)
    item = CborDecoder(reader, count=1, config=config).read_item()
    if target is None:
        return item
    return _validate(item, target)


def iter_loads(
    data: bytes | bytearray | memoryview | IO[bytes],
    count: int | None = None,
    option: CborOption = CborOption.NONE,
    *,
    max_depth: int | None = None,
) -> Iterator[CborItem]:
    """逐个解码 CBOR 序列中的数据项.

    Args:
        data: 内存数据或二进制文件类对象.
        count: 期望的数据项个数; None 时读到输入结束或遇到 break 为止.
        option: 反序列化选项.
        max_depth: 最大嵌套深度.

    Yields:
        CborItem: 依次解码出的数据项.

    Raises:
        CborParseError: 数据格式错误或被截断.
    """
    config = CborConfig.from_params(option, max_depth)
    if isinstance(data, (bytes, bytearray, memoryview)):
        reader = DataReader(data)
    else:
        reader = IOReader(data)
    decoder = CborDecoder(reader, count=count, config=config)
    while decoder.has_more():
        yield decoder.read_item()


__all__ = [
    "dump",
    "dumps",
    "encoded_length",
    "iter_loads",
    "load",
    "loads",
]
