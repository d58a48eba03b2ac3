"""开发环境准备服务 — CLI 调用的完整流程

读取编排配置 → 解析全部依赖 → 写出带 exec 路径的最终配置。
配置只在全部依赖解析成功后才写出。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from devsetup.core.config import Config
from devsetup.core.dep.releases import GitHubReleaseClient, ReleaseClient
from devsetup.core.dep_manager import DependencyOrchestrator
from devsetup.core.models import ProcessSpec, ResolvedProcess
from devsetup.core.orchestrator_config import load_config, publish
from devsetup.utils.shell import CommandExecutor

logger = logging.getLogger(__name__)


@dataclass
class SetupReport:
    """一次 setup 的结果"""

    install_dir: Path
    output_path: Path
    platform_tag: str | None
    processes: list[ResolvedProcess] = field(default_factory=list)

    @property
    def published(self) -> list[ResolvedProcess]:
        return [p for p in self.processes if not p.exclude]


class SetupService:
    """依赖准备 + 配置发布"""

    def __init__(
        self,
        config: Config,
        *,
        client: ReleaseClient | None = None,
        executor: CommandExecutor | None = None,
        platform_tag: str | None = None,
    ) -> None:
        self.config = config
        self.client = client
        self.executor = executor
        self.platform_tag = platform_tag

    async def execute(self) -> SetupReport:
        document = load_config(self.config.config_file)
        install_dir = Path(self.config.install_dir or document.dev_dependencies_location)
        processes = document.processes

        if self.client is not None:
            resolved, platform_tag = await self._resolve(self.client, install_dir, processes)
        else:
            async with GitHubReleaseClient(
                api_url=self.config.api_url, token=self.config.github_token,
            ) as client:
                resolved, platform_tag = await self._resolve(client, install_dir, processes)

        output_path = publish(document, resolved, install_dir / self.config.output_file)
        return SetupReport(
            install_dir=install_dir,
            output_path=output_path,
            platform_tag=platform_tag,
            processes=resolved,
        )

    async def _resolve(
        self, client: ReleaseClient, install_dir: Path, processes: list[ProcessSpec],
    ) -> tuple[list[ResolvedProcess], str | None]:
        orchestrator = DependencyOrchestrator(
            install_dir, client,
            config=self.config,
            executor=self.executor,
            platform_tag=self.platform_tag,
        )
        resolved = await orchestrator.run(processes)
        return resolved, orchestrator.platform_tag
