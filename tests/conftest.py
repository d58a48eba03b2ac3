"""共享 fixture — 模拟 GitHub 发布接口 + 解压执行器

FakeGitHub 通过 httpx.MockTransport 挂到真实的 GitHubReleaseClient 上，
测试覆盖完整的 HTTP 层，同时记录每一次请求，便于断言是否发生了下载。
"""

from __future__ import annotations

import re
import zipfile
from pathlib import Path
from typing import Any

import httpx
import pytest

from devsetup.core.dep.releases import GitHubReleaseClient
from devsetup.utils.shell import CommandResult

API_HOST = "api.github.com"
_RELEASES_RE = re.compile(r"^/repos/(?P<repo>[^/]+/[^/]+)/releases$")


class FakeGitHub:
    """内存中的 GitHub: releases 列表 + 资源下载"""

    def __init__(self) -> None:
        self.releases: dict[str, list[dict[str, Any]]] = {}
        self.assets: dict[str, bytes] = {}
        self.requests: list[httpx.Request] = []
        self._next_id = 1

    def add_release(
        self,
        repo: str,
        tag: str,
        published_at: str | None,
        assets: dict[str, bytes],
    ) -> dict[str, Any]:
        release_id = self._next_id
        self._next_id += 1
        release = {
            "url": f"https://{API_HOST}/repos/{repo}/releases/{release_id}",
            "tag_name": tag,
            "published_at": published_at,
            "assets": [],
        }
        for name, content in assets.items():
            url = f"https://github.com/{repo}/releases/download/{tag}/{name}"
            self.assets[url] = content
            release["assets"].append({"name": name, "browser_download_url": url})
        self.releases.setdefault(repo, []).append(release)
        return release

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.host == API_HOST:
            m = _RELEASES_RE.match(request.url.path)
            if m is None:
                return httpx.Response(404, json={"message": "Not Found"})
            return httpx.Response(200, json=self.releases.get(m.group("repo"), []))
        url = str(request.url)
        if url in self.assets:
            return httpx.Response(200, content=self.assets[url])
        return httpx.Response(404)

    @property
    def downloads(self) -> list[str]:
        return [str(r.url) for r in self.requests if r.url.host != API_HOST]

    @property
    def listings(self) -> list[str]:
        return [r.url.path for r in self.requests if r.url.host == API_HOST]


class ZipExecutor:
    """用 zipfile 模拟 `unzip -o <archive> -d <dir>`"""

    def __init__(self) -> None:
        self.calls: list[list[str]] = []

    async def execute(self, args: list[str], *, cwd: str | None = None) -> CommandResult:
        self.calls.append(args)
        archive, dest = Path(args[2]), Path(args[4])
        if not archive.exists():
            return CommandResult(9, "", f"unzip: cannot find {archive}")
        try:
            with zipfile.ZipFile(archive) as zf:
                zf.extractall(dest)
        except zipfile.BadZipFile as e:
            return CommandResult(9, "", str(e))
        return CommandResult(0, f"Archive: {archive}", "")


def make_zip(path: Path, members: dict[str, bytes]) -> bytes:
    with zipfile.ZipFile(path, "w") as zf:
        for name, content in members.items():
            zf.writestr(name, content)
    return path.read_bytes()


@pytest.fixture()
def github() -> FakeGitHub:
    return FakeGitHub()


@pytest.fixture()
def release_client(github: FakeGitHub) -> GitHubReleaseClient:
    http = httpx.AsyncClient(
        transport=httpx.MockTransport(github.handler), follow_redirects=True,
    )
    return GitHubReleaseClient(client=http)


@pytest.fixture()
def zip_executor() -> ZipExecutor:
    return ZipExecutor()
