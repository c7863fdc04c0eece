"""cborkit 命令行工具.

把十六进制文本或 CBOR 二进制文件解码后, 以诊断记法、JSON、Python 对象
或 Rich 树的形式输出.
"""

import json
import pprint
import sys
import traceback
from pathlib import Path
from typing import TextIO

import click
from rich.console import Console
from rich.syntax import Syntax
from rich.text import Text
from rich.tree import Tree

from .api import iter_loads, loads
from .exceptions import CborError
from .options import CborOption
from .types import CborItem, Kind

_HEX_DIGITS = frozenset("0123456789abcdefABCDEF")

# 树状输出的样式
_STYLES = {
    "tag": "bold blue",
    "type": "cyan",
    "text": "green",
    "number": "magenta",
    "index": "dim",
    "role": "italic",
}

_SCALAR_NAMES = {
    Kind.INTEGER: "Integer",
    Kind.FLOAT: "Float",
    Kind.BYTE_STRING: "Bytes",
    Kind.TEXT_STRING: "Text",
    Kind.SIMPLE: "Simple",
}


def _parse_hex(text: str) -> bytes:
    """解析十六进制文本, 忽略空白.

    Raises:
        ValueError: 如果内容不是有效的十六进制字符串.
    """
    cleaned = "".join(text.split())
    if not cleaned or not all(c in _HEX_DIGITS for c in cleaned):
        raise ValueError("不是有效的十六进制字符串")
    return bytes.fromhex(cleaned)


def _read_input_file(file_path: Path, verbose: bool) -> bytes:
    """读取输入文件.

    内容是十六进制文本时按文本解析, 否则视为原始 CBOR 二进制.
    """
    raw = file_path.read_bytes()
    try:
        data = _parse_hex(raw.decode("ascii"))
        mode = "十六进制数据 (文本模式)"
    except (UnicodeDecodeError, ValueError):
        data = raw
        mode = "二进制数据 (二进制模式)"
    if verbose:
        click.echo(f"[DEBUG] 从文件读取{mode}, 共 {len(raw)} 字节", err=True)
    return data


def _scalar_label(item: CborItem) -> tuple[str, str, str]:
    """返回标量节点的 (类型描述, 值文本, 值样式)."""
    kind = item.kind
    type_str = _SCALAR_NAMES[kind]

    if kind == Kind.BYTE_STRING:
        return f"{type_str}={len(item)}", item.value.hex(" ").upper(), "text"
    if kind == Kind.TEXT_STRING:
        return f"{type_str}={len(item)}", item.to_json(), "text"
    if kind == Kind.FLOAT:
        type_str += f"/{item.width.name.lower()}"

    # 标签已在节点前单独显示, 这里只取诊断记法的主体
    body = item.to_diagnostic()
    if item.is_tagged:
        body = body[len(f"{item.tag}(") : -1]
    return type_str, body, "number"


def _add_tree_node(item: CborItem, parent: Tree) -> None:
    """把数据项作为子节点递归加入树中."""
    label = Text()
    if item.is_tagged:
        label.append(f"tag {item.tag} ", style=_STYLES["tag"])

    if item.kind == Kind.ARRAY:
        label.append(f"Array ({len(item)})", style=_STYLES["type"])
        node = parent.add(label)
        for i, child in enumerate(item):
            _add_tree_node(child, node.add(Text(f"[{i}]", style=_STYLES["index"])))
        return

    if item.kind == Kind.MAP:
        label.append(f"Map ({len(item)})", style=_STYLES["type"])
        node = parent.add(label)
        for i, (key, value) in enumerate(item.items()):
            entry = node.add(Text(f"Entry {i}", style=_STYLES["index"]))
            _add_tree_node(key, entry.add(Text("Key", style=_STYLES["role"])))
            _add_tree_node(value, entry.add(Text("Value", style=_STYLES["role"])))
        return

    type_str, value_str, value_style = _scalar_label(item)
    label.append(f"{type_str}: ", style=_STYLES["type"])
    label.append(value_str, style=_STYLES[value_style])
    parent.add(label)


def _print_item_tree(items: list[CborItem], file: TextIO | None = None) -> None:
    """打印数据项树 (使用 Rich).

    Args:
        items: 数据项列表.
        file: 输出文件对象, 默认为 stdout (此时强制使用终端颜色).
    """
    root = Tree("CBOR", style="bold white")
    for item in items:
        _add_tree_node(item, root)
    Console(file=file, force_terminal=file is None).print(root)


def _format_items(items: list[CborItem], output_format: str, verbose: bool) -> str:
    """把数据项渲染为 diag/json/pretty 文本."""
    if output_format == "diag":
        return "\n".join(item.to_diagnostic(0) for item in items)

    if output_format == "json":
        lossy = [i for i, item in enumerate(items) if not item.is_valid_json()]
        if lossy and verbose:
            click.echo(
                f"[DEBUG] 数据项 {lossy} 无法无损表示为 JSON, 已使用替代值",
                err=True,
            )
        return "\n".join(
            json.dumps(json.loads(item.to_json()), indent=2, ensure_ascii=False)
            for item in items
        )

    try:
        values = [item.to_python() for item in items]
    except CborError as e:
        raise click.ClickException(f"转换失败: {e}") from e
    return "\n".join(pprint.pformat(v, width=100) for v in values)


def _decode_and_print(
    data: bytes,
    output_format: str,
    output_file: str | None,
    verbose: bool,
    sequence: bool,
    option: CborOption,
) -> None:
    """解码并输出结果."""
    if verbose:
        click.echo(f"[DEBUG] 数据大小: {len(data)} 字节", err=True)

    try:
        if sequence:
            items = list(iter_loads(data, option=option))
        else:
            items = [loads(data, option=option)]
    except CborError as e:
        if verbose:
            traceback.print_exc(file=sys.stderr)
        raise click.ClickException(f"解码失败: {e}") from e

    if verbose:
        click.echo(f"[DEBUG] 解码出 {len(items)} 个数据项", err=True)

    if output_format == "tree":
        if output_file is None:
            _print_item_tree(items)
            return
        with open(output_file, "w", encoding="utf-8") as f:
            _print_item_tree(items, file=f)
    else:
        output_text = _format_items(items, output_format, verbose)
        if output_file is None:
            if output_format == "json":
                Console().print(
                    Syntax(output_text, "json", theme="monokai", word_wrap=True)
                )
            else:
                click.echo(output_text)
            return
        Path(output_file).write_text(output_text, encoding="utf-8")

    click.echo(f"结果已保存到: {output_file}", err=True)


@click.command(help="CBOR 解码命令行工具")
@click.argument("encoded", required=False)
@click.option(
    "-f",
    "--file",
    "file_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="从文件读取数据 (十六进制文本或原始二进制)",
)
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["diag", "json", "pretty", "tree"]),
    default="diag",
    show_default=True,
    help="输出格式",
)
@click.option(
    "-o",
    "--output",
    "output_file",
    type=click.Path(dir_okay=False, writable=True),
    help="将输出保存到文件 (如不指定则输出到控制台)",
)
@click.option(
    "-s",
    "--sequence",
    is_flag=True,
    help="按 CBOR 序列解码全部数据项",
)
@click.option(
    "--strict-tags",
    is_flag=True,
    help="遇到无效标签时报错而不是忽略",
)
@click.option(
    "-v",
    "--verbose",
    is_flag=True,
    help="显示详细的解码过程信息",
)
def cli(
    encoded: str | None,
    file_path: Path | None,
    output_format: str,
    output_file: str | None,
    sequence: bool,
    strict_tags: bool,
    verbose: bool,
) -> None:
    """CBOR 解码命令行工具.

    Examples:
      # 直接解码十六进制数据
      cborkit "83010203"

      # 从文件读取数据
      cborkit -f input.cbor

      # 以 JSON 格式输出结果
      cborkit -f input.hex --format json

      # 以 Tree 格式输出
      cborkit "a16161820102" --format tree
    """
    if encoded and file_path:
        raise click.UsageError("不能同时指定 ENCODED 数据和 --file 参数")
    if not encoded and not file_path:
        raise click.UsageError("必须指定 ENCODED 数据或 --file 参数")

    if file_path is not None:
        data = _read_input_file(file_path, verbose)
    else:
        try:
            data = _parse_hex(encoded or "")
        except ValueError as e:
            raise click.BadParameter(f"无效的十六进制格式 - {e}") from e

    option = CborOption.STRICT_TAGS if strict_tags else CborOption.NONE
    _decode_and_print(data, output_format, output_file, verbose, sequence, option)


def main() -> None:
    """入口函数."""
    cli()


if __name__ == "__main__":
    main()
