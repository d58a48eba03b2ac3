"""远程依赖解析器

职责:
- 选出最新发布（published_at 最大，相同时保留列表中靠前者）
- 发布 URL 与已记录一致时跳过下载
- 按平台标签或通配符挑选资源并下载到安装目录
"""

from __future__ import annotations

import logging
from pathlib import Path

from devsetup.core.dep.releases import ReleaseClient
from devsetup.core.dep.state import DependencyState
from devsetup.core.exceptions import ConfigError, ResolutionError
from devsetup.core.models import (
    Asset,
    DependencyRecord,
    ProcessSpec,
    Release,
    ResolveOutcome,
    ResolveResult,
)
from devsetup.core.pattern import Matcher, make_matcher
from devsetup.utils.net import url_basename, validate_url_scheme

logger = logging.getLogger(__name__)


def latest_release(releases: list[Release]) -> Release | None:
    """返回 published_at 最新的发布；缺少时间的发布视为最旧"""
    latest: Release | None = None
    for release in releases:
        if latest is None:
            latest = release
        elif release.published_at is not None and (
            latest.published_at is None or release.published_at > latest.published_at
        ):
            latest = release
    return latest


def select_asset(release: Release, matcher: Matcher) -> Asset | None:
    """按列表顺序返回第一个名称匹配的资源"""
    for asset in release.assets:
        if matcher(asset.name):
            return asset
    return None


class RemoteResolver:
    """GitHub 发布来源解析器"""

    def __init__(self, install_dir: Path, client: ReleaseClient) -> None:
        self.install_dir = install_dir
        self.client = client

    async def resolve(
        self, spec: ProcessSpec, platform_tag: str | None, state: DependencyState,
    ) -> ResolveResult:
        if not spec.source:
            raise ConfigError("sourceType 为 'github' 时必须提供 source")
        if platform_tag is None:
            raise ResolutionError(f"{spec.source}: 不支持的平台")
        matcher = make_matcher(spec, platform_tag)

        releases = await self.client.list_releases(spec.source)
        release = latest_release(releases)
        if release is None:
            raise ResolutionError(f"{spec.source}: 没有任何发布")

        existing = state.get(spec.source)
        if existing is not None and existing.url and existing.url == release.url:
            logger.info("已是最新: %s (%s)", spec.source, existing.filename)
            return ResolveResult(spec.source, existing.filename, ResolveOutcome.SKIPPED)

        asset = select_asset(release, matcher)
        if asset is None:
            raise ResolutionError(
                f"{spec.source}: 发布 {release.tag_name or release.url} 中没有匹配的资源 "
                f"(platform={platform_tag}, sourceFileType={spec.source_file_type.value})"
            )

        url = asset.browser_download_url
        validate_url_scheme(url, context=f"dep download {spec.source}")
        filename = url_basename(url) or asset.name
        await self.client.download(url, self.install_dir / filename)

        state[spec.source] = DependencyRecord(filename=filename, url=release.url)
        logger.info("已拉取: %s -> %s", spec.source, filename)
        return ResolveResult(spec.source, filename, ResolveOutcome.FETCHED)
