"""本地目录依赖解析器

从本地目录中挑选匹配的文件复制到安装目录。本地目录没有版本信号，
因此每次运行都重新复制。
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from devsetup.core.dep.state import DependencyState
from devsetup.core.exceptions import ConfigError, ResolutionError, TransportError
from devsetup.core.models import DependencyRecord, ProcessSpec, ResolveOutcome, ResolveResult
from devsetup.core.pattern import make_matcher

logger = logging.getLogger(__name__)


class LocalResolver:
    """本地目录来源解析器"""

    def __init__(self, install_dir: Path) -> None:
        self.install_dir = install_dir

    async def resolve(
        self, spec: ProcessSpec, platform_tag: str | None, state: DependencyState,
    ) -> ResolveResult:
        if not spec.local_path:
            raise ConfigError("sourceType 为 'local' 时必须提供 localPath")
        if platform_tag is None:
            raise ResolutionError(f"{spec.local_path}: 不支持的平台")
        matcher = make_matcher(spec, platform_tag)

        local_dir = Path(spec.local_path)
        if not local_dir.exists():
            raise ResolutionError(f"本地路径不存在: {spec.local_path}")
        if not local_dir.is_dir():
            raise ResolutionError(f"本地路径不是目录: {spec.local_path}")

        try:
            entries = sorted(local_dir.iterdir(), key=lambda p: p.name)
        except OSError as e:
            raise ResolutionError(f"无法读取本地目录 {spec.local_path}: {e}") from e

        for entry in entries:
            if entry.is_file() and matcher(entry.name):
                target = self.install_dir / entry.name
                logger.info("从本地复制: %s -> %s", entry, target)
                try:
                    shutil.copyfile(entry, target)
                except OSError as e:
                    raise TransportError(f"复制失败 {entry} -> {target}: {e}") from e
                state[spec.local_path] = DependencyRecord(
                    filename=entry.name, path=spec.local_path,
                )
                return ResolveResult(spec.local_path, entry.name, ResolveOutcome.FETCHED)

        raise ResolutionError(
            f"{spec.local_path} 中没有匹配的文件 "
            f"(platform={platform_tag}, sourceFileType={spec.source_file_type.value})"
        )
