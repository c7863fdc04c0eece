"""CBOR 特定的异常类.

该模块为 cborkit 定义了异常层次结构.
"""


class CborError(Exception):
    """所有 cborkit 异常的基类."""

    pass


class CborParseError(CborError):
    """输入不是合法的 CBOR 数据时抛出.

    Case:
        - 头字节使用了保留的附加信息 (28-30).
        - 输入数据被截断.
        - 不定长字符串缺少 break 或者分块类型不一致.
        - 非标签操作数超出有符号 64 位范围.
        - 单个数据项之后还有多余数据.
    """

    def __init__(self, msg: str, offset: int | None = None) -> None:
        """初始化解析错误.

        Args:
            msg: 错误描述信息.
            offset: 出错时已消费的字节数.
        """
        super().__init__(msg)
        self.offset = offset

    def __str__(self) -> str:
        base_msg = super().__str__()
        if self.offset is not None:
            return f"{base_msg} (at byte {self.offset})"
        return base_msg


class CborPartialDataError(CborParseError):
    """输入数据不完整时抛出.

    通常在流式解析时抛出, 表示需要更多数据才能完成解析.
    """

    pass


class CborExhaustedError(CborError, LookupError):
    """计数模式下读取的数据项超过了预期数量时抛出."""

    pass


class CborConversionError(CborError):
    """Python 对象与数据项之间无法转换时抛出.

    Case:
        - 不支持的 Python 类型.
        - 标签 24 内嵌的数据无法解码.
    """

    pass


class CborValueError(CborError, ValueError):
    """构造数据项时值无效 (如标签越界, 保留的简单值)."""

    pass


class CborTypeError(CborError, TypeError):
    """构造数据项时参数类型不匹配."""

    pass


class CborIOError(CborError, OSError):
    """写入字节汇失败时抛出."""

    pass


class CborOverflowError(CborIOError):
    """固定容量的字节汇空间不足时抛出."""

    pass
