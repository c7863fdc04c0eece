"""CBOR 解码器实现.

该模块提供 `CborDecoder`, 从 `ByteCursor` 逐个拉取数据项.
解码是递归的: 标签头把标签交给紧随其后的数据项, 容器递归读取子项.
"""

import struct
from collections.abc import Iterator

from .buffer import ByteCursor, DataReader
from .config import CborConfig
from .const import (
    BREAK,
    EXTRA_1B,
    EXTRA_2B,
    EXTRA_4B,
    EXTRA_8B,
    INDEFINITE,
    INFO_MASK,
    INT64_MAX,
    UNTAGGED,
    MajorType,
    is_valid_tag,
)
from .exceptions import (
    CborError,
    CborExhaustedError,
    CborParseError,
    CborPartialDataError,
)
from .half import decode16
from .log import logger
from .types import (
    CborArray,
    CborByteString,
    CborFloat,
    CborInteger,
    CborItem,
    CborMap,
    CborSimple,
    CborTextString,
    FloatWidth,
)

_STRUCT_F = struct.Struct(">f")
_STRUCT_D = struct.Struct(">d")


class CborDecoder:
    """从字节游标读取 CBOR 数据项.

    `count` 为 None 时, 只要输入未结束且下一个字节不是 break 就继续读取;
    否则恰好读取 `count` 个顶层数据项.

    解码器实例只能使用一次, 且不可重入.
    """

    __slots__ = ("_config", "_cursor", "_depth", "_remaining")

    def __init__(
        self,
        cursor: ByteCursor | bytes | bytearray | memoryview,
        count: int | None = None,
        config: CborConfig | None = None,
    ):
        """初始化解码器.

        Args:
            cursor: 字节游标, 也可以直接传入内存数据.
            count: 期望读取的顶层数据项个数, None 表示不限.
            config: 解码配置.
        """
        if not isinstance(cursor, ByteCursor):
            cursor = DataReader(cursor)
        if count is not None and count < 0:
            raise ValueError(f"count must be non-negative, got {count}")
        self._cursor = cursor
        self._remaining = count
        self._config = config or CborConfig()
        self._depth = 0

    @property
    def bytes_consumed(self) -> int:
        """已消费的字节数."""
        return self._cursor.bytes_consumed

    def has_more(self) -> bool:
        """是否还有可读取的顶层数据项."""
        if self._remaining is not None:
            return self._remaining > 0
        next_byte = self._cursor.peek()
        return next_byte is not None and next_byte != BREAK

    def read_item(self) -> CborItem:
        """读取下一个顶层数据项.

        Returns:
            CborItem: 解码出的数据项.

        Raises:
            CborExhaustedError: 没有更多数据项.
            CborParseError: 输入格式错误或被截断.
        """
        if not self.has_more():
            raise CborExhaustedError("No more items to read")

        item = self._read_guarded()
        if self._remaining is not None:
            self._remaining -= 1
        return item

    def __iter__(self) -> Iterator[CborItem]:
        while self.has_more():
            yield self.read_item()

    def _read_guarded(self) -> CborItem:
        try:
            return self._read_item(UNTAGGED)
        except CborParseError:
            raise
        except RecursionError as e:
            raise CborParseError(
                "Nesting too deep", self._cursor.bytes_consumed
            ) from e
        except CborError as e:
            # 数据项构造失败 (如保留的简单值)
            raise CborParseError(
                f"CBOR data is corrupt: {e}", self._cursor.bytes_consumed
            ) from e

    # --- 头部 ---

    def _read_operand(self, info: int) -> int | None:
        """读取操作数, 不定长时返回 None."""
        if info < EXTRA_1B:
            return info
        if info == EXTRA_1B:
            return self._cursor.read_u8()
        if info == EXTRA_2B:
            return self._cursor.read_u16()
        if info == EXTRA_4B:
            return self._cursor.read_u32()
        if info == EXTRA_8B:
            return self._cursor.read_u64()
        if info == INDEFINITE:
            return None
        raise CborParseError(
            f"Reserved additional info {info}", self._cursor.bytes_consumed - 1
        )

    def _check_operand(self, major: int, operand: int) -> int:
        if operand > INT64_MAX:
            raise CborParseError(
                f"Operand {operand} of major type {major} overflows 64-bit integer",
                self._cursor.bytes_consumed,
            )
        return operand

    def _resolve_tag(self, operand: int | None) -> int:
        """把标签头的操作数解析为标签值.

        越界的标签记录警告并降级为 UNTAGGED, 严格模式下直接报错.
        """
        offset = self._cursor.bytes_consumed
        if operand is None:
            raise CborParseError("Indefinite length tag", offset)
        if operand > INT64_MAX:
            if self._config.strict_tags:
                raise CborParseError(f"Tag {operand} overflows 64-bit integer", offset)
            logger.warning("[CborDecoder] 标签 %d 溢出, 按无标签处理", operand)
            return UNTAGGED
        if not is_valid_tag(operand):
            if self._config.strict_tags:
                raise CborParseError(f"Invalid tag {operand}", offset)
            logger.warning("[CborDecoder] 忽略无效标签 %d", operand)
            return UNTAGGED
        return operand

    # --- 数据项 ---

    def _read_item(self, tag: int) -> CborItem:
        max_depth = self._config.max_depth
        if max_depth is not None and self._depth > max_depth:
            raise CborParseError(
                f"Maximum nesting depth {max_depth} exceeded",
                self._cursor.bytes_consumed,
            )

        self._depth += 1
        try:
            return self._read_body(tag)
        finally:
            self._depth -= 1

    def _read_body(self, tag: int) -> CborItem:
        cursor = self._cursor
        header = cursor.read_u8()
        major = header >> 5
        info = header & INFO_MASK

        if major == MajorType.OTHER:
            return self._read_other(info, tag)

        operand = self._read_operand(info)

        if major == MajorType.TAG:
            # 多个连续标签只保留最内层的那个
            return self._read_body(self._resolve_tag(operand))

        if operand is not None:
            operand = self._check_operand(major, operand)

        if major == MajorType.UNSIGNED_INT:
            if operand is None:
                raise CborParseError(
                    "Indefinite length integer", cursor.bytes_consumed - 1
                )
            return CborInteger(operand, tag, MajorType.UNSIGNED_INT)

        if major == MajorType.NEGATIVE_INT:
            if operand is None:
                raise CborParseError(
                    "Indefinite length integer", cursor.bytes_consumed - 1
                )
            return CborInteger(-1 - operand, tag, MajorType.NEGATIVE_INT)

        if major == MajorType.BYTE_STRING:
            raw = self._read_string_bytes(major, operand)
            return CborByteString(raw, tag)

        if major == MajorType.TEXT_STRING:
            raw = self._read_string_bytes(major, operand)
            return CborTextString.from_utf8(raw, tag)

        if major == MajorType.ARRAY:
            return self._read_array(operand, tag)

        return self._read_map(operand, tag)

    def _read_other(self, info: int, tag: int) -> CborItem:
        cursor = self._cursor
        if info == EXTRA_2B:
            return CborFloat(decode16(cursor.read_u16()), FloatWidth.HALF, tag)
        if info == EXTRA_4B:
            value = _STRUCT_F.unpack(cursor.read_bytes(4))[0]
            return CborFloat(value, FloatWidth.SINGLE, tag)
        if info == EXTRA_8B:
            value = _STRUCT_D.unpack(cursor.read_bytes(8))[0]
            return CborFloat(value, FloatWidth.DOUBLE, tag)
        if info == INDEFINITE:
            raise CborParseError("Unexpected break", cursor.bytes_consumed - 1)

        operand = self._read_operand(info)
        return CborSimple.create(operand, tag)

    def _read_string_bytes(self, major: int, length: int | None) -> bytes:
        cursor = self._cursor
        if length is not None:
            return cursor.read_bytes(length)

        chunks = bytearray()
        while True:
            next_byte = cursor.peek()
            if next_byte is None:
                raise CborPartialDataError(
                    "Missing break in indefinite length string",
                    cursor.bytes_consumed,
                )
            if next_byte == BREAK:
                cursor.read_u8()
                return bytes(chunks)

            chunk_major = next_byte >> 5
            chunk_info = next_byte & INFO_MASK
            if chunk_major != major or chunk_info == INDEFINITE:
                raise CborParseError(
                    "Indefinite length string chunk has wrong type",
                    cursor.bytes_consumed,
                )
            cursor.read_u8()
            chunk_length = self._check_operand(
                chunk_major, self._read_operand(chunk_info)
            )
            chunks.extend(cursor.read_bytes(chunk_length))

    def _has_more_children(self, remaining: int | None) -> bool:
        if remaining is not None:
            return remaining > 0
        next_byte = self._cursor.peek()
        if next_byte is None:
            raise CborPartialDataError(
                "Missing break in indefinite length container",
                self._cursor.bytes_consumed,
            )
        if next_byte == BREAK:
            self._cursor.read_u8()
            return False
        return True

    def _read_array(self, count: int | None, tag: int) -> CborArray:
        array = CborArray(tag=tag)
        while self._has_more_children(count):
            array._append_owned(self._read_item(UNTAGGED))
            if count is not None:
                count -= 1
        return array

    def _read_map(self, count: int | None, tag: int) -> CborMap:
        mapping = CborMap(tag=tag)
        while self._has_more_children(count):
            key = self._read_item(UNTAGGED)
            value = self._read_item(UNTAGGED)
            mapping._put_owned(key, value)
            if count is not None:
                count -= 1
        return mapping


def decode(
    data: bytes | bytearray | memoryview, config: CborConfig | None = None
) -> tuple[CborItem, int]:
    """解码第一个数据项.

    Returns:
        tuple[CborItem, int]: (数据项, 消耗的字节数).
    """
    decoder = CborDecoder(DataReader(data), count=1, config=config)
    logger.debug("[CborDecoder] 开始解码 %d 字节", len(data))
    item = decoder.read_item()
    logger.debug("[CborDecoder] 解码完成, 消耗 %d 字节", decoder.bytes_consumed)
    return item, decoder.bytes_consumed
