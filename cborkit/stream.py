"""CBOR 序列的增量读写.

CBOR 数据项是自定界的, 多个数据项直接首尾相接即构成 CBOR 序列, 不需要额外的长度头.
`CborStreamWriter` 把对象逐个编码追加到缓冲区;
`CborStreamReader` 接收任意切分的数据块, 并产出其中已经完整到达的数据项.
"""

from collections.abc import Iterator
from typing import Any

from .api import dumps
from .config import CborConfig
from .decoder import decode
from .exceptions import CborPartialDataError
from .options import CborOption
from .types import CborItem

DEFAULT_MAX_BUFFER_SIZE = 10 * 1024 * 1024


class CborStreamWriter:
    """把多个对象依次编码到同一个缓冲区."""

    def __init__(self, option: CborOption = CborOption.NONE):
        self._config = CborConfig.from_params(option)
        self._buffer = bytearray()

    def pack(self, obj: Any) -> None:
        """编码一个对象 (数据项或 Python 对象) 并追加到序列末尾."""
        self._buffer += dumps(obj, option=self._config.flags)

    write = pack

    def write_bytes(self, data: bytes | bytearray | memoryview) -> None:
        """追加已经编码好的字节, 不做校验."""
        self._buffer += data

    def get_buffer(self) -> bytes:
        return bytes(self._buffer)

    def clear(self) -> None:
        self._buffer.clear()

    def __len__(self) -> int:
        return len(self._buffer)


class CborStreamReader:
    """从分块到达的数据中解码 CBOR 序列.

    迭代时产出缓冲区中所有完整的数据项; 被截断的最后一个数据项留在缓冲区,
    等待下一次 `feed()`.

    Examples:
        >>> reader = CborStreamReader()
        >>> reader.feed(b"\\x01\\x82\\x01")
        >>> [str(item) for item in reader]
        ['1']
        >>> reader.feed(b"\\x02")
        >>> [str(item) for item in reader]
        ['[1,2]']
    """

    def __init__(
        self,
        option: CborOption = CborOption.NONE,
        max_buffer_size: int = DEFAULT_MAX_BUFFER_SIZE,
        max_depth: int | None = None,
    ):
        """初始化流式读取器.

        Args:
            option: 解码选项.
            max_buffer_size: 未解码数据的上限, 超过时 `feed()` 报错.
            max_depth: 最大嵌套深度, None 表示不限制.
        """
        self._config = CborConfig.from_params(option, max_depth)
        self._buffer = bytearray()
        self._max_buffer_size = max_buffer_size

    def feed(self, data: bytes | bytearray | memoryview) -> None:
        """追加新到达的数据.

        Raises:
            BufferError: 未解码的数据超过 max_buffer_size.
        """
        if len(self._buffer) + len(data) > self._max_buffer_size:
            raise BufferError("CborStreamReader buffer exceeded max size")
        self._buffer += data

    @property
    def pending(self) -> int:
        """缓冲区中尚未解码的字节数."""
        return len(self._buffer)

    def __iter__(self) -> Iterator[CborItem]:
        """逐个产出已完整到达的数据项.

        Raises:
            CborParseError: 数据格式错误 (数据不完整时只是停止迭代).
        """
        while self._buffer:
            try:
                item, consumed = decode(bytes(self._buffer), self._config)
            except CborPartialDataError:
                return
            del self._buffer[:consumed]
            yield item
