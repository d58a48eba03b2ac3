"""资源名匹配

两种模式:
  - platform-binary: 名称中包含平台标签即视为匹配
  - pattern-match:   通配符整串匹配（* 任意长度，? 单个字符）
"""

from __future__ import annotations

import re
from typing import Callable

from devsetup.core.exceptions import ConfigError
from devsetup.core.models import ProcessSpec, SourceFileType

Matcher = Callable[[str], bool]


def wildcard_to_regex(pattern: str) -> str:
    """逐字符转换通配符，除 * / ? 外一律按字面量转义（包括反斜杠）"""
    parts: list[str] = []
    for ch in pattern:
        if ch == "*":
            parts.append(".*")
        elif ch == "?":
            parts.append(".")
        else:
            parts.append(re.escape(ch))
    return "".join(parts)


def compile_wildcard(pattern: str) -> Matcher:
    """将通配符编译为整串匹配谓词"""
    regex = re.compile(wildcard_to_regex(pattern), re.DOTALL)
    return lambda name: regex.fullmatch(name) is not None


def substring_match(platform_tag: str, candidate: str) -> bool:
    return platform_tag in candidate


def make_matcher(spec: ProcessSpec, platform_tag: str) -> Matcher:
    """按 sourceFileType 选择匹配方式

    Raises:
        ConfigError: pattern-match 模式未提供 sourceFilePattern
    """
    if spec.source_file_type == SourceFileType.PATTERN_MATCH:
        if not spec.source_file_pattern:
            raise ConfigError(
                f"{spec.identity or '<unknown>'}: "
                'sourceFileType 为 "pattern-match" 时必须提供 sourceFilePattern'
            )
        return compile_wildcard(spec.source_file_pattern)
    return lambda name: substring_match(platform_tag, name)
