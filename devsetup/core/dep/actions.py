"""拉取后处理流水线

按声明顺序执行 unzip / chmod / move，前一步的结果对后一步可见。
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from devsetup.core.exceptions import ConfigError, ResolutionError, TransportError
from devsetup.core.models import Action, ActionType
from devsetup.utils.shell import CommandExecutor, LocalExecutor

logger = logging.getLogger(__name__)

EXECUTABLE_MODE = 0o755


class ActionPipeline:
    """在安装目录内对刚拉取的文件执行处理动作"""

    def __init__(self, install_dir: Path, executor: CommandExecutor | None = None) -> None:
        self.install_dir = install_dir
        self.executor = executor or LocalExecutor()

    @staticmethod
    def validate(actions: list[Action]) -> None:
        """执行前预检: move 必须提供 location"""
        for action in actions:
            if action.type == ActionType.MOVE and not action.location:
                raise ConfigError("move 动作必须提供 location")

    async def apply(self, actions: list[Action], filename: str) -> None:
        if not actions:
            return
        self.validate(actions)
        for action in actions:
            if action.type == ActionType.UNZIP:
                await self._unzip(filename)
            elif action.type == ActionType.CHMOD:
                self._chmod(action.file or filename)
            elif action.type == ActionType.MOVE:
                self._move(filename, action)

    async def _unzip(self, filename: str) -> None:
        archive = self.install_dir / filename
        logger.info("解压: %s", archive)
        args = ["unzip", "-o", str(archive), "-d", str(self.install_dir)]
        try:
            result = await self.executor.execute(args)
        except OSError as e:
            raise TransportError(f"无法启动解压进程: {e}") from e
        if not result.success:
            raise TransportError(
                f"解压失败 {archive} (rc={result.returncode}): {result.stderr[:500]}",
                returncode=result.returncode,
                stderr=result.stderr,
            )
        logger.info("已解压: %s", archive)

    def _chmod(self, name: str) -> None:
        target = self.install_dir / name
        if not target.exists():
            raise ResolutionError(f"chmod 目标不存在: {target}")
        try:
            os.chmod(target, EXECUTABLE_MODE)
        except OSError as e:
            raise ResolutionError(f"chmod 失败 {target}: {e}") from e
        logger.debug("chmod 755: %s", target)

    def _move(self, filename: str, action: Action) -> None:
        source = self.install_dir / filename
        if not source.exists():
            raise ResolutionError(f"move 源文件不存在: {source}")
        target_dir = self.install_dir / action.location
        target = target_dir / (action.filename or filename)
        try:
            if not target_dir.exists():
                target_dir.mkdir(parents=True, exist_ok=True)
                logger.info("已创建目录: %s", target_dir)
            logger.info("移动: %s -> %s", source, target)
            os.replace(source, target)
        except OSError as e:
            raise ResolutionError(f"move 失败 {source} -> {target}: {e}") from e
