"""编排配置读写

编排配置是人工维护的 JSON5 文件（允许注释、尾逗号、不加引号的键），
由下游编排器直接读取。解析结果写回时只替换指定顶层键的值文本，
其余内容（包括注释和格式）原样保留。
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import json5

from devsetup.core.exceptions import ConfigError
from devsetup.core.models import ProcessSpec, ResolvedProcess
from devsetup.utils.yaml_io import atomic_write, read_text

logger = logging.getLogger(__name__)

_QUOTES = ("'", '"')
_DEFAULT_INDENT = "  "


@dataclass
class ConfigDocument:
    """编排配置文档: 原始文本 + 解析结果"""

    text: str
    data: dict[str, Any] = field(default_factory=dict)
    path: Path | None = None

    @classmethod
    def from_text(cls, text: str, path: Path | None = None) -> ConfigDocument:
        try:
            data = json5.loads(text)
        except ValueError as e:
            raise ConfigError(f"编排配置解析失败 {path or ''}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"编排配置顶层必须是对象: {path or ''}")
        return cls(text=text, data=data, path=path)

    @property
    def dev_dependencies_location(self) -> str:
        return str(self.data.get("devDependenciesLocation") or ".")

    @property
    def processes(self) -> list[ProcessSpec]:
        raw = self.data.get("processes") or []
        if not isinstance(raw, list):
            raise ConfigError("processes 必须是数组")
        return [ProcessSpec.from_dict(item) for item in raw]


def load_config(path: str | Path) -> ConfigDocument:
    """读取编排配置

    Raises:
        ConfigError: 文件不存在、无法读取或内容无效
    """
    p = Path(path)
    if not p.exists():
        raise ConfigError(f"编排配置不存在: {p}")
    try:
        text = read_text(p)
    except (OSError, ValueError) as e:
        raise ConfigError(f"编排配置无法读取 {p}: {e}") from e
    return ConfigDocument.from_text(text, path=p)


# =========================================================================
# 文本扫描: 定位顶层对象成员的值区间
# =========================================================================


def _skip_trivia(text: str, i: int) -> int:
    """跳过空白和注释"""
    n = len(text)
    while i < n:
        if text[i].isspace():
            i += 1
        elif text.startswith("//", i):
            end = text.find("\n", i)
            i = n if end < 0 else end + 1
        elif text.startswith("/*", i):
            end = text.find("*/", i + 2)
            if end < 0:
                raise ConfigError("编排配置中的块注释未闭合")
            i = end + 2
        else:
            break
    return i


def _skip_string(text: str, i: int) -> int:
    quote = text[i]
    i += 1
    while i < len(text):
        ch = text[i]
        if ch == "\\":
            i += 2
            continue
        if ch == quote:
            return i + 1
        i += 1
    raise ConfigError("编排配置中的字符串未闭合")


def _skip_value(text: str, i: int) -> tuple[int, int]:
    """返回 (值的结束位置, 终止符位置)；终止符为同层的 , 或 }"""
    depth = 0
    value_end = i
    n = len(text)
    while i < n:
        ch = text[i]
        if ch in _QUOTES:
            i = _skip_string(text, i)
            value_end = i
            continue
        if ch.isspace() or text.startswith(("//", "/*"), i):
            i = _skip_trivia(text, i)
            continue
        if ch in "[{":
            depth += 1
        elif ch in "]}":
            if depth == 0:
                break
            depth -= 1
        elif ch == "," and depth == 0:
            break
        i += 1
        value_end = i
    return value_end, i


def _read_key(text: str, i: int) -> tuple[str, int]:
    if text[i] in _QUOTES:
        end = _skip_string(text, i)
        return json5.loads(text[i:end]), end
    start = i
    while i < len(text) and not text[i].isspace() and text[i] not in ":/":
        i += 1
    return text[start:i], i


def _scan_members(text: str) -> tuple[int, dict[str, tuple[int, int, int]]]:
    """扫描顶层对象，返回 ({ 的位置, {键: (键起点, 值起点, 值终点)})"""
    i = _skip_trivia(text, 0)
    if i >= len(text) or text[i] != "{":
        raise ConfigError("编排配置顶层必须是对象")
    open_pos = i
    members: dict[str, tuple[int, int, int]] = {}
    i += 1
    while True:
        i = _skip_trivia(text, i)
        if i >= len(text):
            raise ConfigError("编排配置顶层对象未闭合")
        if text[i] == "}":
            break
        key_start = i
        key, i = _read_key(text, i)
        i = _skip_trivia(text, i)
        if i >= len(text) or text[i] != ":":
            raise ConfigError(f"编排配置顶层键缺少冒号: {key}")
        value_start = _skip_trivia(text, i + 1)
        value_end, i = _skip_value(text, value_start)
        members[key] = (key_start, value_start, value_end)
        if i < len(text) and text[i] == ",":
            i += 1
    return open_pos, members


def _line_indent(text: str, pos: int) -> str:
    line_start = text.rfind("\n", 0, pos) + 1
    line = text[line_start:pos]
    return line[: len(line) - len(line.lstrip())]


def _render(value: Any, indent: str) -> str:
    return json.dumps(value, indent=2, ensure_ascii=False).replace("\n", "\n" + indent)


def _render_key(key: str) -> str:
    if key.isascii() and key.isidentifier():
        return key
    return json.dumps(key, ensure_ascii=False)


def patch_config(original: str, new_values: dict[str, Any]) -> str:
    """替换 original 中指定顶层键的值，保留其余文本

    原文中不存在的键插入到顶层对象开头（JSON5 允许尾逗号）。

    Raises:
        ConfigError: original 不是以对象为顶层的 JSON5 文本
    """
    text = original
    for key, value in new_values.items():
        open_pos, members = _scan_members(text)
        if key in members:
            _, start, end = members[key]
            text = text[:start] + _render(value, _line_indent(text, start)) + text[end:]
            continue
        first_key = min((m[0] for m in members.values()), default=None)
        indent = _line_indent(text, first_key) if first_key is not None else ""
        indent = indent or _DEFAULT_INDENT
        member = f"\n{indent}{_render_key(key)}: {_render(value, indent)},"
        text = text[: open_pos + 1] + member + text[open_pos + 1:]
    return text


def publish(
    document: ConfigDocument,
    resolved: list[ResolvedProcess],
    output_path: str | Path,
) -> Path:
    """过滤 sourceExclude 的进程，替换 processes 后写出最终配置

    Raises:
        ConfigError: 配置文件无法写出
    """
    final = [p.to_dict() for p in resolved if not p.exclude]
    text = patch_config(document.text, {"processes": final})
    out = Path(output_path)
    try:
        atomic_write(out, text)
    except OSError as e:
        raise ConfigError(f"无法写出配置 {out}: {e}") from e
    logger.info(
        "已生成配置: %s (%d 个进程, %d 个排除)",
        out, len(final), len(resolved) - len(final),
    )
    return out
