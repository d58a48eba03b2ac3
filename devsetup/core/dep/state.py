"""依赖状态存储

deps.json 记录每个来源上一次拉取的结果:

    {
      "acme/tool": {"url": "https://api.github.com/...", "filename": "tool-linux"},
      "/vendor":   {"path": "/vendor", "filename": "widget-linux"}
    }

每次运行加载一次，在内存中更新，全部进程成功后整体覆盖写回。
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from devsetup.core.exceptions import StateCorruptionError
from devsetup.core.models import DependencyRecord
from devsetup.utils.yaml_io import atomic_write

logger = logging.getLogger(__name__)

DependencyState = dict[str, DependencyRecord]


class DependencyStateStore:
    """deps.json 读写，假定每次运行只有一个写入者"""

    def __init__(self, install_dir: Path, filename: str = "deps.json") -> None:
        self.path = Path(install_dir) / filename

    def load(self) -> DependencyState:
        """加载状态；文件不存在时先创建空状态

        Raises:
            StateCorruptionError: 文件无法读写、JSON 无法解析或结构不符
        """
        try:
            if not self.path.exists():
                self.path.parent.mkdir(parents=True, exist_ok=True)
                self.path.write_text(json.dumps({}), encoding="utf-8")
                logger.info("已创建依赖状态文件: %s", self.path)
            text = self.path.read_text(encoding="utf-8")
        except OSError as e:
            raise StateCorruptionError(f"依赖状态文件无法读写 {self.path}: {e}") from e

        try:
            raw = json.loads(text)
        except ValueError as e:
            raise StateCorruptionError(f"依赖状态文件解析失败 {self.path}: {e}") from e

        if not isinstance(raw, dict):
            raise StateCorruptionError(
                f"依赖状态文件顶层必须是对象: {self.path} (实际: {type(raw).__name__})"
            )
        state = {key: DependencyRecord.from_dict(key, value) for key, value in raw.items()}
        logger.debug("已加载 %d 条依赖记录", len(state))
        return state

    def save(self, state: DependencyState) -> None:
        """整体覆盖写回，2 空格缩进"""
        content = json.dumps(
            {key: record.to_dict() for key, record in state.items()},
            indent=2, ensure_ascii=False,
        )
        try:
            atomic_write(self.path, content)
        except OSError as e:
            raise StateCorruptionError(f"依赖状态文件写入失败 {self.path}: {e}") from e
        logger.info("依赖状态已保存: %s (%d 条)", self.path, len(state))
