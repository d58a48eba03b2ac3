"""依赖编排器

为编排配置中声明的每个进程准备可执行文件:

  1. 合并: 叠加当前平台的 sourcePlatformConfig
  2. 分发: 按 sourceType 交给远程 / 本地解析器
  3. 处理: 新拉取的文件执行 sourceActions
  4. 赋值: exec = sourceExecOverride 或 "./<filename>"
  5. 投影: 生成只含业务字段的 ResolvedProcess

所有进程并发解析，任一失败即整体失败；deps.json 仅在全部成功后写回。

用法:
    from devsetup.core.dep_manager import DependencyOrchestrator

    async with GitHubReleaseClient(token=cfg.github_token) as client:
        orchestrator = DependencyOrchestrator(install_dir, client, config=cfg)
        resolved = await orchestrator.run(processes)
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from devsetup.core.config import Config
from devsetup.core.dep.actions import ActionPipeline
from devsetup.core.dep.fetcher import RemoteResolver
from devsetup.core.dep.releases import ReleaseClient
from devsetup.core.dep.resolver import LocalResolver
from devsetup.core.dep.state import DependencyState, DependencyStateStore
from devsetup.core.exceptions import ConfigError, DevSetupError
from devsetup.core.models import (
    Action,
    ActionType,
    ProcessSpec,
    ResolvedProcess,
    ResolveOutcome,
    SourceType,
)
from devsetup.core.platform import detect_platform
from devsetup.utils.shell import CommandExecutor

logger = logging.getLogger(__name__)


def bootstrap_spec(source: str) -> ProcessSpec:
    """编排器自身的依赖声明，与用户进程走同一解析路径"""
    return ProcessSpec(source=source, source_actions=[Action(type=ActionType.CHMOD)])


class DependencyOrchestrator:
    """依赖解析顶层驱动"""

    def __init__(
        self,
        install_dir: str | Path,
        client: ReleaseClient,
        *,
        config: Config | None = None,
        executor: CommandExecutor | None = None,
        platform_tag: str | None = None,
    ) -> None:
        self.config = config or Config()
        self.install_dir = Path(install_dir)
        self.platform_tag = platform_tag or detect_platform()
        self.store = DependencyStateStore(self.install_dir, self.config.state_file)
        self.remote = RemoteResolver(self.install_dir, client)
        self.local = LocalResolver(self.install_dir)
        self.pipeline = ActionPipeline(self.install_dir, executor)

    # ------------------------------------------------------------------
    # 校验
    # ------------------------------------------------------------------

    @staticmethod
    def validate(processes: list[ProcessSpec]) -> None:
        """在任何 IO 之前校验全部有效配置

        - move 动作必须提供 location
        - 不允许两个进程共享同一个来源标识
        """
        seen: dict[str, int] = {}
        for index, spec in enumerate(processes):
            ActionPipeline.validate(spec.source_actions)
            identity = spec.identity
            if not identity:
                continue
            if identity in seen:
                raise ConfigError(
                    f"processes[{seen[identity]}] 与 processes[{index}] "
                    f"使用了相同的来源: {identity}"
                )
            seen[identity] = index

    # ------------------------------------------------------------------
    # 解析
    # ------------------------------------------------------------------

    async def resolve_process(self, spec: ProcessSpec, state: DependencyState) -> ResolvedProcess:
        """解析单个有效配置（已完成平台合并）"""
        resolver = self.local if spec.source_type == SourceType.LOCAL else self.remote
        try:
            result = await resolver.resolve(spec, self.platform_tag, state)
            if result.outcome == ResolveOutcome.FETCHED:
                await self.pipeline.apply(spec.source_actions, result.filename)
        except DevSetupError as e:
            e.source = e.source or spec.identity or "<unknown>"
            logger.error("依赖解析失败: %s: %s", e.source, e, extra={"source": e.source})
            raise

        return ResolvedProcess.from_spec(spec, state[result.identity])

    async def run(self, processes: list[ProcessSpec]) -> list[ResolvedProcess]:
        """解析全部进程，返回与声明顺序一致的结果（含 sourceExclude 的进程）"""
        effective = [spec.effective(self.platform_tag) for spec in processes]
        self.validate(effective)
        logger.info(
            "开始解析 %d 个依赖 (platform=%s, dir=%s)",
            len(processes), self.platform_tag, self.install_dir,
        )

        try:
            self.install_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ConfigError(f"无法创建安装目录 {self.install_dir}: {e}") from e
        state = self.store.load()

        if self.config.bootstrap_source:
            await self.resolve_process(bootstrap_spec(self.config.bootstrap_source), state)

        resolved = await asyncio.gather(
            *(self.resolve_process(spec, state) for spec in effective)
        )

        self.store.save(state)
        logger.info("依赖解析完成: %d 个", len(resolved))
        return list(resolved)
