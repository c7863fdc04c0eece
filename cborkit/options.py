"""CBOR 编解码的配置选项.

该模块定义了用于控制 `dumps` 和 `loads` 函数行为的选项标志.
"""

from enum import IntFlag


class CborOption(IntFlag):
    """CBOR 配置选项标志.

    可以使用位运算组合多个选项:
        option = CborOption.ALLOW_TRAILING_DATA | CborOption.STRICT_TAGS
    """

    # 默认行为: 单项解码要求消费全部输入, 无效标签降级为 UNTAGGED
    NONE = 0x0000

    # 允许 loads 在第一个数据项之后留有多余字节
    ALLOW_TRAILING_DATA = 0x0001

    # 无效标签或 8 字节溢出的标签直接报错, 不再降级
    STRICT_TAGS = 0x0002
