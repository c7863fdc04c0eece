"""字节游标与字节汇.

解码器从 `ByteCursor` 读取, 编码器向 `ByteSink` 写入.
所有多字节整数均为大端序 (网络字节序).
"""

import abc
import struct
from typing import BinaryIO

from .exceptions import CborIOError, CborOverflowError, CborPartialDataError

_STRUCT_H = struct.Struct(">H")
_STRUCT_I = struct.Struct(">I")
_STRUCT_Q = struct.Struct(">Q")

# 大长度字段按块读取, 截断的输入不会先分配整块内存
_READ_CHUNK = 64 * 1024


class ByteCursor(abc.ABC):
    """只进的字节读取游标."""

    @abc.abstractmethod
    def peek(self) -> int | None:
        """查看下一个字节而不移动游标, 输入结束时返回 None."""

    @abc.abstractmethod
    def read_bytes(self, length: int) -> bytes:
        """读取恰好 length 个字节.

        Raises:
            CborPartialDataError: 剩余数据不足.
        """

    @property
    @abc.abstractmethod
    def bytes_consumed(self) -> int:
        """已消费的字节数."""

    def has_remaining(self) -> bool:
        """是否还有未读取的字节."""
        return self.peek() is not None

    def read_u8(self) -> int:
        """读取无符号 8 位整数."""
        return self.read_bytes(1)[0]

    def read_u16(self) -> int:
        """读取无符号 16 位整数."""
        return _STRUCT_H.unpack(self.read_bytes(2))[0]

    def read_u32(self) -> int:
        """读取无符号 32 位整数."""
        return _STRUCT_I.unpack(self.read_bytes(4))[0]

    def read_u64(self) -> int:
        """读取无符号 64 位整数."""
        return _STRUCT_Q.unpack(self.read_bytes(8))[0]


class DataReader(ByteCursor):
    """内存数据的零复制读取器.

    包装 memoryview 以提供流式读取功能, 只在返回结果时复制数据.
    """

    __slots__ = ("_pos", "_view", "length")

    _view: memoryview
    _pos: int
    length: int

    def __init__(self, data: bytes | bytearray | memoryview):
        """初始化DataReader.

        Args:
            data: 要读取的二进制数据.
        """
        self._view = memoryview(data).cast("B")
        self._pos = 0
        self.length = len(self._view)

    @property
    def bytes_consumed(self) -> int:
        return self._pos

    @property
    def remaining(self) -> int:
        """剩余未读的字节数."""
        return self.length - self._pos

    def peek(self) -> int | None:
        if self._pos >= self.length:
            return None
        return self._view[self._pos]

    def has_remaining(self) -> bool:
        return self._pos < self.length

    def read_u8(self) -> int:
        if self._pos >= self.length:
            raise CborPartialDataError("Not enough data to read u8", self._pos)
        val = self._view[self._pos]
        self._pos += 1
        return val

    def read_bytes(self, length: int) -> bytes:
        if length < 0:
            raise ValueError(f"Cannot read negative bytes: {length}")
        if self._pos + length > self.length:
            raise CborPartialDataError(
                f"Not enough data to read {length} bytes", self._pos
            )
        start = self._pos
        self._pos += length
        return self._view[start : self._pos].tobytes()


class IOReader(ByteCursor):
    """二进制文件对象的读取器, 带一个字节的预读."""

    __slots__ = ("_fp", "_lookahead", "_pos")

    def __init__(self, fp: BinaryIO):
        self._fp = fp
        self._lookahead: int | None = None
        self._pos = 0

    @property
    def bytes_consumed(self) -> int:
        return self._pos

    def peek(self) -> int | None:
        if self._lookahead is None:
            chunk = self._fp.read(1)
            if not chunk:
                return None
            self._lookahead = chunk[0]
        return self._lookahead

    def read_bytes(self, length: int) -> bytes:
        if length < 0:
            raise ValueError(f"Cannot read negative bytes: {length}")
        if length == 0:
            return b""

        out = bytearray()
        if self._lookahead is not None:
            out.append(self._lookahead)
            self._lookahead = None
        while len(out) < length:
            chunk = self._fp.read(min(length - len(out), _READ_CHUNK))
            if not chunk:
                # 已读出的字节仍计入偏移
                self._pos += len(out)
                raise CborPartialDataError(
                    f"Not enough data to read {length} bytes", self._pos
                )
            out.extend(chunk)
        self._pos += length
        return bytes(out)


class ByteSink(abc.ABC):
    """只追加的字节汇."""

    @abc.abstractmethod
    def put_bytes(self, data: bytes | bytearray | memoryview) -> None:
        """追加原始字节."""

    @property
    @abc.abstractmethod
    def length_so_far(self) -> int:
        """已写入的字节数."""

    def put_u8(self, value: int) -> None:
        self.put_bytes(bytes((value & 0xFF,)))

    def put_u16(self, value: int) -> None:
        self.put_bytes(_STRUCT_H.pack(value))

    def put_u32(self, value: int) -> None:
        self.put_bytes(_STRUCT_I.pack(value))

    def put_u64(self, value: int) -> None:
        self.put_bytes(_STRUCT_Q.pack(value))


class DataWriter(ByteSink):
    """可增长的内存写入器."""

    __slots__ = ("_buffer",)

    _buffer: bytearray

    def __init__(self):
        self._buffer = bytearray()

    @property
    def length_so_far(self) -> int:
        return len(self._buffer)

    def get_bytes(self) -> bytes:
        """返回累积的字节."""
        return bytes(self._buffer)

    def put_u8(self, value: int) -> None:
        self._buffer.append(value & 0xFF)

    def put_bytes(self, data: bytes | bytearray | memoryview) -> None:
        self._buffer.extend(data)


class FixedWriter(ByteSink):
    """固定容量的写入器, 超出容量时报错."""

    __slots__ = ("_buffer", "_pos")

    def __init__(self, capacity: int):
        if capacity < 0:
            raise ValueError(f"capacity must be non-negative, got {capacity}")
        self._buffer = bytearray(capacity)
        self._pos = 0

    @property
    def capacity(self) -> int:
        return len(self._buffer)

    @property
    def length_so_far(self) -> int:
        return self._pos

    def get_bytes(self) -> bytes:
        """返回已写入的字节."""
        return bytes(self._buffer[: self._pos])

    def put_bytes(self, data: bytes | bytearray | memoryview) -> None:
        end = self._pos + len(data)
        if end > len(self._buffer):
            raise CborOverflowError(
                f"Buffer overflow: need {end} bytes, capacity is {len(self._buffer)}"
            )
        self._buffer[self._pos : end] = data
        self._pos = end


class CountingWriter(ByteSink):
    """只计数不存储的写入器, 用于预先计算编码长度."""

    __slots__ = ("_count",)

    def __init__(self):
        self._count = 0

    @property
    def length_so_far(self) -> int:
        return self._count

    def put_u8(self, value: int) -> None:
        self._count += 1

    def put_u16(self, value: int) -> None:
        self._count += 2

    def put_u32(self, value: int) -> None:
        self._count += 4

    def put_u64(self, value: int) -> None:
        self._count += 8

    def put_bytes(self, data: bytes | bytearray | memoryview) -> None:
        self._count += len(data)


class IOWriter(ByteSink):
    """二进制文件对象的写入器."""

    __slots__ = ("_count", "_fp")

    def __init__(self, fp: BinaryIO):
        self._fp = fp
        self._count = 0

    @property
    def length_so_far(self) -> int:
        return self._count

    def put_bytes(self, data: bytes | bytearray | memoryview) -> None:
        try:
            self._fp.write(data)
        except (OSError, ValueError) as e:
            # 已关闭的文件对象抛出 ValueError
            raise CborIOError(f"Failed to write to stream: {e}") from e
        self._count += len(data)
