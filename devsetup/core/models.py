"""核心数据模型

配置侧:
- ProcessSpec: 声明的进程依赖（解析前，完整字段）
- PlatformOverride: 按平台覆盖 ProcessSpec 的部分字段
- Action: 拉取后的处理步骤

状态侧:
- DependencyRecord: deps.json 中单个来源的记录
- Release / Asset: 远程发布元数据（只读）
- ResolveResult: 解析器返回值（SKIPPED | FETCHED）
- ResolvedProcess: 解析完成后写回编排配置的进程
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from devsetup.core.exceptions import ConfigError, StateCorruptionError

# =========================================================================
# 枚举
# =========================================================================


class SourceType(str, Enum):
    """依赖来源类型"""
    GITHUB = "github"
    LOCAL = "local"


class SourceFileType(str, Enum):
    """资源匹配方式"""
    PLATFORM_BINARY = "platform-binary"
    PATTERN_MATCH = "pattern-match"


class ActionType(str, Enum):
    """拉取后处理动作"""
    UNZIP = "unzip"
    CHMOD = "chmod"
    MOVE = "move"


class ResolveOutcome(str, Enum):
    """单个来源的解析结果"""
    SKIPPED = "skipped"   # 远程发布未变化，沿用已记录文件
    FETCHED = "fetched"   # 本次重新下载 / 复制


def _parse_enum(enum_cls: type[Enum], value: Any, key: str) -> Any:
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ConfigError(f"{key} 取值无效: {value!r}（可选: {allowed}）") from None


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """递归合并两个字典，返回新字典

    - 两侧都是 dict 的键逐键递归合并
    - 其余情况（标量、列表）以 override 为准，列表整体替换而非拼接
    """
    result = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = copy.deepcopy(value)
    return result


# =========================================================================
# 配置侧模型
# =========================================================================


@dataclass
class Action:
    """拉取后处理步骤"""

    type: ActionType
    file: str = ""        # chmod 目标，默认为拉取到的文件
    location: str = ""    # move 目标子目录（必填）
    filename: str = ""    # move 后的文件名，默认保持原名

    @classmethod
    def from_dict(cls, data: Any) -> Action:
        if not isinstance(data, dict):
            raise ConfigError(f"sourceActions 中的元素必须是映射: {data!r}")
        return cls(
            type=_parse_enum(ActionType, data.get("type"), "sourceActions[].type"),
            file=data.get("file") or "",
            location=data.get("location") or "",
            filename=data.get("filename") or "",
        )


# 配置文件中的 camelCase 键 -> 数据类字段名
_SOURCE_KEYS = {
    "sourceType": "source_type",
    "source": "source",
    "localPath": "local_path",
    "sourceFileType": "source_file_type",
    "sourceFilePattern": "source_file_pattern",
    "sourceActions": "source_actions",
    "sourceExecOverride": "source_exec_override",
    "sourceExclude": "source_exclude",
}
# 解析后仍原样写回编排配置的来源键（其余来源键在解析后剥离）
_RETAINED_KEYS = frozenset(("sourceFileType", "sourceFilePattern", "sourceExclude"))
_PLATFORM_CONFIG_KEY = "sourcePlatformConfig"


def _split_fields(
    data: dict[str, Any],
) -> tuple[dict[str, Any], dict[str, Any], frozenset[str]]:
    """将原始映射拆成 (来源相关字段, 业务字段, 显式置空的字段)"""
    fields: dict[str, Any] = {}
    extra: dict[str, Any] = {}
    cleared: set[str] = set()
    for key, value in data.items():
        name = _SOURCE_KEYS.get(key)
        if name is None or key in _RETAINED_KEYS:
            if key != _PLATFORM_CONFIG_KEY:
                extra[key] = value
            if name is None:
                continue
        if value is None:
            cleared.add(name)
            continue
        if name == "source_type":
            value = _parse_enum(SourceType, value, key)
        elif name == "source_file_type":
            value = _parse_enum(SourceFileType, value, key)
        elif name == "source_actions":
            if not isinstance(value, list):
                raise ConfigError(f"sourceActions 必须是列表: {value!r}")
            value = [Action.from_dict(a) for a in value]
        elif name == "source_exclude":
            value = bool(value)
        else:
            value = str(value)
        fields[name] = value
    return fields, extra, frozenset(cleared)


@dataclass
class PlatformOverride:
    """平台覆盖配置

    None 表示该字段不覆盖；配置中显式写 null 的字段记入 cleared，
    合并时恢复为默认值。
    """

    source_type: SourceType | None = None
    source: str | None = None
    local_path: str | None = None
    source_file_type: SourceFileType | None = None
    source_file_pattern: str | None = None
    source_actions: list[Action] | None = None
    source_exec_override: str | None = None
    source_exclude: bool | None = None
    cleared: frozenset[str] = frozenset()
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Any) -> PlatformOverride:
        if not isinstance(data, dict):
            raise ConfigError(f"{_PLATFORM_CONFIG_KEY} 的平台项必须是映射: {data!r}")
        fields, extra, cleared = _split_fields(data)
        return cls(cleared=cleared, extra=extra, **fields)


_OVERRIDABLE = tuple(_SOURCE_KEYS.values())


@dataclass
class ProcessSpec:
    """声明的进程依赖

    来源字段之外的键（name、args、env 等）原样保存在 extra 中，
    解析完成后写回编排配置。sourceFileType / sourceFilePattern / sourceExclude
    既解析为字段，也保留在 extra 中。
    """

    source_type: SourceType = SourceType.GITHUB
    source: str = ""
    local_path: str = ""
    source_file_type: SourceFileType = SourceFileType.PLATFORM_BINARY
    source_file_pattern: str = ""
    source_actions: list[Action] = field(default_factory=list)
    source_exec_override: str = ""
    source_exclude: bool = False
    source_platform_config: dict[str, PlatformOverride] = field(default_factory=dict)
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Any) -> ProcessSpec:
        if not isinstance(data, dict):
            raise ConfigError(f"processes 中的元素必须是映射: {data!r}")
        fields, extra, _ = _split_fields(data)
        platform_config = data.get(_PLATFORM_CONFIG_KEY) or {}
        if not isinstance(platform_config, dict):
            raise ConfigError(f"{_PLATFORM_CONFIG_KEY} 必须是映射: {platform_config!r}")
        return cls(
            source_platform_config={
                str(tag): PlatformOverride.from_dict(ovr)
                for tag, ovr in platform_config.items()
            },
            extra=extra,
            **fields,
        )

    @property
    def identity(self) -> str:
        """状态记录的键: 远程为仓库标识，本地为目录路径"""
        if self.source_type == SourceType.LOCAL:
            return self.local_path
        return self.source

    def apply_override(self, override: PlatformOverride) -> ProcessSpec:
        """返回叠加覆盖后的新 ProcessSpec，不修改自身"""
        changes: dict[str, Any] = {}
        for name in _OVERRIDABLE:
            value = getattr(override, name)
            if value is not None:
                changes[name] = list(value) if isinstance(value, list) else value
        if override.cleared:
            defaults = ProcessSpec()
            for name in override.cleared:
                changes[name] = getattr(defaults, name)
        return replace(
            self,
            source_platform_config={},
            extra=deep_merge(self.extra, override.extra),
            **changes,
        )

    def effective(self, platform_tag: str | None) -> ProcessSpec:
        """计算当前平台的有效配置（不再携带 sourcePlatformConfig）"""
        override = self.source_platform_config.get(platform_tag or "")
        if override is None:
            return replace(self, source_platform_config={})
        return self.apply_override(override)


# =========================================================================
# 状态侧模型
# =========================================================================


@dataclass
class DependencyRecord:
    """deps.json 中的单条记录: {url|path, filename}"""

    filename: str
    url: str = ""
    path: str = ""

    def to_dict(self) -> dict[str, str]:
        if self.url:
            return {"url": self.url, "filename": self.filename}
        return {"path": self.path, "filename": self.filename}

    @classmethod
    def from_dict(cls, key: str, data: Any) -> DependencyRecord:
        if not isinstance(data, dict) or not isinstance(data.get("filename"), str):
            raise StateCorruptionError(f"依赖记录格式错误: {key} -> {data!r}")
        url = data.get("url") or ""
        path = data.get("path") or ""
        if not url and not path:
            raise StateCorruptionError(f"依赖记录缺少 url/path: {key}")
        return cls(filename=data["filename"], url=str(url), path=str(path))


@dataclass
class Asset:
    """发布中的可下载资源"""

    name: str
    browser_download_url: str


@dataclass
class Release:
    """远程发布"""

    url: str
    published_at: datetime | None = None
    assets: list[Asset] = field(default_factory=list)
    tag_name: str = ""

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> Release:
        """从 GitHub releases 接口的单个元素构建

        Raises:
            ValueError: published_at 不是合法的 ISO-8601 时间
        """
        published = data.get("published_at")
        return cls(
            url=data.get("url") or "",
            published_at=_parse_timestamp(published) if published else None,
            assets=[
                Asset(
                    name=a.get("name") or "",
                    browser_download_url=a.get("browser_download_url") or "",
                )
                for a in data.get("assets") or []
                if isinstance(a, dict)
            ],
            tag_name=data.get("tag_name") or "",
        )


def _parse_timestamp(value: str) -> datetime:
    # GitHub 使用 "2024-01-01T00:00:00Z"，旧版 fromisoformat 不识别 Z
    parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    # 无时区的时间按 UTC 处理，保证可相互比较
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


@dataclass
class ResolveResult:
    """解析器返回值"""

    identity: str
    filename: str
    outcome: ResolveOutcome


@dataclass
class ResolvedProcess:
    """解析完成的进程，只保留业务字段和可执行路径"""

    extra: dict[str, Any]
    exec_path: str
    exclude: bool = False

    @classmethod
    def from_spec(cls, spec: ProcessSpec, record: DependencyRecord) -> ResolvedProcess:
        return cls(
            extra=copy.deepcopy(spec.extra),
            exec_path=spec.source_exec_override or f"./{record.filename}",
            exclude=spec.source_exclude,
        )

    def to_dict(self) -> dict[str, Any]:
        return {**self.extra, "exec": self.exec_path}
