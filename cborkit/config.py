"""cborkit 配置对象."""

from dataclasses import dataclass

from .options import CborOption


@dataclass(frozen=True)
class CborConfig:
    """编解码配置 (不可变).

    在 API 入口层创建, 然后传递给解码器内核.

    Attributes:
        flags: 选项标志 (IntFlag).
        max_depth: 最大嵌套深度, None 表示不限制.
    """

    flags: CborOption = CborOption.NONE
    max_depth: int | None = None

    @classmethod
    def from_params(
        cls,
        option: CborOption = CborOption.NONE,
        max_depth: int | None = None,
    ) -> "CborConfig":
        """从参数构建配置对象.

        Args:
            option: CborOption 枚举.
            max_depth: 最大嵌套深度.

        Returns:
            CborConfig: 配置对象.

        Raises:
            ValueError: max_depth 为负数.
        """
        if max_depth is not None and max_depth < 0:
            raise ValueError(f"max_depth must be non-negative, got {max_depth}")
        return cls(flags=CborOption(option), max_depth=max_depth)

    @property
    def allow_trailing_data(self) -> bool:
        """是否允许单项解码后留有多余字节."""
        return bool(self.flags & CborOption.ALLOW_TRAILING_DATA)

    @property
    def strict_tags(self) -> bool:
        """无效标签是否直接报错."""
        return bool(self.flags & CborOption.STRICT_TAGS)
