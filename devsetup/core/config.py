"""工具配置

支持从 YAML 文件加载 + 命令行覆盖。配置对象由入口显式构造并逐层传入，
不提供全局单例。
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field, fields, replace
from typing import Any

import yaml

from devsetup.core.exceptions import ConfigError
from devsetup.utils.yaml_io import load_yaml

logger = logging.getLogger(__name__)

DEFAULT_BOOTSTRAP_SOURCE = "3sig/3suite-orchestrator"


@dataclass
class Config:
    """devsetup 运行配置"""

    # 编排配置（输入）与生成的配置文件名（写入 devDependenciesLocation）
    config_file: str = "orchestrator.json5"
    output_file: str = "config.json5"
    # 依赖状态文件，相对安装目录
    state_file: str = "deps.json"

    # 安装目录；为空时取编排配置中的 devDependenciesLocation
    install_dir: str = ""

    # GitHub 兼容的 releases 接口
    api_url: str = "https://api.github.com"
    github_token: str = ""

    # 编排器自身，先于用户进程解析；为空则跳过
    bootstrap_source: str = DEFAULT_BOOTSTRAP_SOURCE

    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_file(cls, path: str) -> Config:
        """从 YAML 文件加载配置，不存在则返回默认

        Raises:
            ConfigError: 文件格式错误或过大
        """
        try:
            data = load_yaml(path)
        except (yaml.YAMLError, ValueError) as e:
            raise ConfigError(f"配置文件无效 {path}: {e}") from e
        if not data:
            return cls()
        known = {f.name for f in fields(cls)} - {"extra"}
        matched = {k: v for k, v in data.items() if k in known}
        extra = {k: v for k, v in data.items() if k not in known}
        cfg = cls(**matched, extra=extra)
        logger.info("配置已加载: %s", path)
        return cfg

    def with_overrides(self, **overrides: Any) -> Config:
        """返回覆盖后的新配置，值为 None 的项忽略"""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        if data.get("github_token"):
            data["github_token"] = "***"
        return data
