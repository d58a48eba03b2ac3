"""远程发布客户端

职责:
- 查询 GitHub 兼容接口的发布列表
- 流式下载发布资源到本地文件
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Protocol

import httpx

from devsetup.core.exceptions import TransportError
from devsetup.core.models import Release

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 64 * 1024


class ReleaseClient(Protocol):
    """发布查询 / 下载协议，测试时可替换"""

    async def list_releases(self, repo: str) -> list[Release]:
        ...

    async def download(self, url: str, dest: Path) -> None:
        ...


class GitHubReleaseClient:
    """基于 httpx.AsyncClient 的 GitHub releases 客户端

    可作为异步上下文管理器使用；传入外部 client 时不负责关闭。
    """

    def __init__(
        self,
        api_url: str = "https://api.github.com",
        token: str = "",
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.api_url = api_url.rstrip("/")
        self.token = token
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(follow_redirects=True)

    async def __aenter__(self) -> GitHubReleaseClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/vnd.github+json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def list_releases(self, repo: str) -> list[Release]:
        """GET /repos/{repo}/releases

        Raises:
            TransportError: 网络错误、非 200 响应或响应体不是列表
        """
        url = f"{self.api_url}/repos/{repo}/releases"
        logger.debug("查询发布列表: %s", url)
        try:
            resp = await self._client.get(
                url, headers=self._headers(), params={"per_page": 100},
            )
        except httpx.HTTPError as e:
            raise TransportError(f"查询发布列表失败 {repo}: {e}") from e

        if resp.status_code != 200:
            raise TransportError(
                f"查询发布列表失败 {repo}: HTTP {resp.status_code} {resp.text[:300]}",
                returncode=resp.status_code,
            )
        try:
            data = resp.json()
        except ValueError as e:
            raise TransportError(f"发布列表不是合法 JSON {repo}: {e}") from e
        if not isinstance(data, list):
            raise TransportError(f"发布列表格式异常 {repo}: {type(data).__name__}")
        try:
            return [Release.from_api(item) for item in data if isinstance(item, dict)]
        except ValueError as e:
            raise TransportError(f"发布列表格式异常 {repo}: {e}") from e

    async def download(self, url: str, dest: Path) -> None:
        """流式下载到 dest，失败时删除残留文件

        Raises:
            TransportError: 网络错误或非 2xx 响应
        """
        logger.info("下载: %s", url)
        try:
            async with self._client.stream("GET", url) as resp:
                if not resp.is_success:
                    raise TransportError(
                        f"下载失败: {url} - HTTP {resp.status_code}",
                        returncode=resp.status_code,
                    )
                with open(dest, "wb") as f:
                    async for chunk in resp.aiter_bytes(_CHUNK_SIZE):
                        f.write(chunk)
        except TransportError:
            dest.unlink(missing_ok=True)
            raise
        except (httpx.HTTPError, OSError) as e:
            dest.unlink(missing_ok=True)
            raise TransportError(f"下载失败: {url} - {e}") from e
        logger.info("已保存: %s", dest)
