"""CBOR 编码器实现.

该模块提供把数据项写入 `ByteSink` 的 `CborEncoder`,
以及不分配缓冲区即可计算编码长度的 `encoded_length`.
"""

import struct

from .buffer import ByteSink, CountingWriter
from .const import EXTRA_1B, EXTRA_2B, EXTRA_4B, MajorType
from .exceptions import CborError, CborTypeError
from .half import encode16
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
    Kind,
    info_for_operand,
)

_PACK_f = struct.Struct(">f").pack
_PACK_d = struct.Struct(">d").pack


class CborEncoder:
    """递归的 CBOR 编码器.

    操作数总是使用最短宽度写出, 映射按插入顺序输出, 字符串不使用不定长分块.
    """

    __slots__ = ("_sink",)

    _sink: ByteSink

    def __init__(self, sink: ByteSink):
        self._sink = sink

    @property
    def sink(self) -> ByteSink:
        return self._sink

    @classmethod
    def length(cls, item: CborItem) -> int:
        """计算数据项编码后的字节数, 不分配输出缓冲区."""
        counter = CountingWriter()
        cls(counter).write_item(item)
        return counter.length_so_far

    def encode(self, item: CborItem) -> None:
        """编码入口, 失败时记录日志并重新抛出."""
        try:
            self.write_item(item)
        except CborError as e:
            logger.error("[CborEncoder] 编码失败: %s", e)
            raise

    def write_tag(self, tag: int) -> None:
        """写入一个单独的标签头."""
        self.write_head(MajorType.TAG, tag)

    def write_head(self, major: int, operand: int) -> None:
        """写入头字节及最短宽度的操作数."""
        sink = self._sink
        info = info_for_operand(operand)
        sink.put_u8((major << 5) | info)
        if info < EXTRA_1B:
            return
        if info == EXTRA_1B:
            sink.put_u8(operand)
        elif info == EXTRA_2B:
            sink.put_u16(operand)
        elif info == EXTRA_4B:
            sink.put_u32(operand)
        else:
            sink.put_u64(operand)

    def write_item(self, item: CborItem) -> None:
        """写入一个数据项 (含其标签)."""
        if item.is_tagged:
            self.write_tag(item.tag)

        kind = item.kind
        if kind == Kind.INTEGER:
            self._write_integer(item)
        elif kind == Kind.FLOAT:
            self._write_float(item)
        elif kind == Kind.BYTE_STRING:
            self._write_byte_string(item)
        elif kind == Kind.TEXT_STRING:
            self._write_text_string(item)
        elif kind == Kind.ARRAY:
            self._write_array(item)
        elif kind == Kind.MAP:
            self._write_map(item)
        elif kind == Kind.SIMPLE:
            self._write_simple(item)
        else:
            raise CborTypeError(f"Cannot encode item of kind {kind!r}")

    def _write_integer(self, item: CborInteger) -> None:
        value = item.value
        operand = value if value >= 0 else -value - 1
        self.write_head(item.major_type, operand)

    def _write_float(self, item: CborFloat) -> None:
        sink = self._sink
        width = item.width
        sink.put_u8((MajorType.OTHER << 5) | width)
        if width == FloatWidth.HALF:
            sink.put_u16(encode16(item.value))
        elif width == FloatWidth.SINGLE:
            sink.put_bytes(_PACK_f(item.value))
        else:
            sink.put_bytes(_PACK_d(item.value))

    def _write_byte_string(self, item: CborByteString) -> None:
        self.write_head(MajorType.BYTE_STRING, len(item.value))
        self._sink.put_bytes(item.value)

    def _write_text_string(self, item: CborTextString) -> None:
        raw = item.raw
        self.write_head(MajorType.TEXT_STRING, len(raw))
        self._sink.put_bytes(raw)

    def _write_array(self, item: CborArray) -> None:
        self.write_head(MajorType.ARRAY, len(item))
        for child in item:
            self.write_item(child)

    def _write_map(self, item: CborMap) -> None:
        self.write_head(MajorType.MAP, len(item))
        for key, value in item.items():
            self.write_item(key)
            self.write_item(value)

    def _write_simple(self, item: CborSimple) -> None:
        self.write_head(MajorType.OTHER, item.value)


def encoded_length(item: CborItem) -> int:
    """等价于 `CborEncoder.length(item)`."""
    return CborEncoder.length(item)
