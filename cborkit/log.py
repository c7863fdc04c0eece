"""cborkit 日志记录器."""

import binascii
import logging

logger = logging.getLogger("cborkit")


def get_hexdump(
    data: bytes | bytearray | memoryview, pos: int, window: int = 16
) -> str:
    """获取指定位置周围数据的十六进制转储.

    出错位置的字节用方括号标出.
    """
    start = max(0, pos - window)
    end = min(len(data), pos + window)
    chunk = bytes(data[start:end])

    cells = []
    for i, byte in enumerate(chunk):
        cell = binascii.hexlify(bytes((byte,))).decode("ascii")
        cells.append(f"[{cell}]" if start + i == pos else cell)

    return f"位置 {pos} 的上下文 (显示 {start}-{end}):\n{' '.join(cells)}"
