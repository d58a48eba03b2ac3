"""依赖解析模块

- state.py: deps.json 状态读写
- releases.py: GitHub releases 查询与下载
- fetcher.py: 远程来源解析
- resolver.py: 本地目录来源解析
- actions.py: 拉取后处理流水线
"""

from devsetup.core.dep.actions import ActionPipeline
from devsetup.core.dep.fetcher import RemoteResolver
from devsetup.core.dep.releases import GitHubReleaseClient, ReleaseClient
from devsetup.core.dep.resolver import LocalResolver
from devsetup.core.dep.state import DependencyState, DependencyStateStore

__all__ = [
    "ActionPipeline",
    "DependencyState",
    "DependencyStateStore",
    "GitHubReleaseClient",
    "LocalResolver",
    "ReleaseClient",
    "RemoteResolver",
]
