"""依赖编排器测试 — 端到端解析场景、幂等、失败不落盘、启动依赖"""

from __future__ import annotations

import json
import os
import stat
from pathlib import Path

import pytest

from conftest import FakeGitHub, ZipExecutor, make_zip
from devsetup.core.config import Config
from devsetup.core.dep.releases import GitHubReleaseClient
from devsetup.core.dep_manager import DependencyOrchestrator, bootstrap_spec
from devsetup.core.exceptions import ConfigError, ResolutionError
from devsetup.core.models import ActionType, ProcessSpec

NO_BOOTSTRAP = Config(bootstrap_source="")
T1 = "2024-01-01T00:00:00Z"
T2 = "2024-02-01T00:00:00Z"


def _specs(*items: dict) -> list[ProcessSpec]:
    return [ProcessSpec.from_dict(item) for item in items]


def _orchestrator(
    install: Path,
    client: GitHubReleaseClient,
    platform_tag: str = "linux",
    config: Config = NO_BOOTSTRAP,
    executor: ZipExecutor | None = None,
) -> DependencyOrchestrator:
    return DependencyOrchestrator(
        install, client, config=config, executor=executor, platform_tag=platform_tag,
    )


class TestScenarios:
    @pytest.mark.asyncio
    async def test_platform_binary_fresh_install(
        self, tmp_path: Path, github: FakeGitHub, release_client: GitHubReleaseClient,
    ) -> None:
        release = github.add_release("acme/tool", "v1", T1, {
            "tool-osx": b"mac", "tool-linux": b"elf",
        })
        install = tmp_path / "deps"
        resolved = await _orchestrator(install, release_client).run(
            _specs({"name": "tool", "source": "acme/tool", "sourceActions": [{"type": "chmod"}]}),
        )

        assert [p.to_dict() for p in resolved] == [{"name": "tool", "exec": "./tool-linux"}]
        assert stat.S_IMODE(os.stat(install / "tool-linux").st_mode) == 0o755
        state = json.loads((install / "deps.json").read_text())
        assert state == {"acme/tool": {"url": release["url"], "filename": "tool-linux"}}

    @pytest.mark.asyncio
    async def test_pattern_zip_windows(
        self, tmp_path: Path, github: FakeGitHub, release_client: GitHubReleaseClient,
        zip_executor: ZipExecutor,
    ) -> None:
        archive = make_zip(tmp_path / "src.zip", {"tool.exe": b"MZ"})
        github.add_release("acme/tool", "v1", T1, {"tool-1.0-linux.tar.gz": b"x", "tool-1.0.zip": archive})
        install = tmp_path / "deps"
        specs = _specs({
            "name": "tool",
            "source": "acme/tool",
            "sourcePlatformConfig": {
                "win": {
                    "sourceFileType": "pattern-match",
                    "sourceFilePattern": "tool-*.zip",
                    "sourceActions": [{"type": "unzip"}],
                    "sourceExecOverride": "tool.exe",
                },
            },
        })

        resolved = await _orchestrator(install, release_client, "win", executor=zip_executor).run(specs)

        assert resolved[0].exec_path == "tool.exe"
        assert (install / "tool.exe").read_bytes() == b"MZ"
        assert len(zip_executor.calls) == 1

    @pytest.mark.asyncio
    async def test_local_source_with_move(
        self, tmp_path: Path, release_client: GitHubReleaseClient,
    ) -> None:
        vendor = tmp_path / "vendor"
        vendor.mkdir()
        (vendor / "widget-osx-arm").write_text("arm")
        install = tmp_path / "deps"
        specs = _specs({
            "name": "widget",
            "sourceType": "local",
            "localPath": str(vendor),
            "sourceActions": [{"type": "move", "location": "bin"}],
            "sourceExclude": True,
        })

        resolved = await _orchestrator(install, release_client, "osx-arm").run(specs)

        assert (install / "bin" / "widget-osx-arm").read_text() == "arm"
        # exec 仍指向安装目录下的原文件名
        assert resolved[0].exec_path == "./widget-osx-arm"
        assert resolved[0].exclude is True
        state = json.loads((install / "deps.json").read_text())
        assert state[str(vendor)] == {"path": str(vendor), "filename": "widget-osx-arm"}

    @pytest.mark.asyncio
    async def test_order_preserved(
        self, tmp_path: Path, github: FakeGitHub, release_client: GitHubReleaseClient,
    ) -> None:
        for repo in ("acme/a", "acme/b", "acme/c"):
            github.add_release(repo, "v1", T1, {f"{repo.split('/')[1]}-linux": b"x"})
        specs = _specs(*({"name": n, "source": f"acme/{n}"} for n in ("c", "a", "b")))
        resolved = await _orchestrator(tmp_path, release_client).run(specs)
        assert [p.extra["name"] for p in resolved] == ["c", "a", "b"]
        assert [p.exec_path for p in resolved] == ["./c-linux", "./a-linux", "./b-linux"]


class TestIdempotence:
    @pytest.mark.asyncio
    async def test_second_run_downloads_nothing(
        self, tmp_path: Path, github: FakeGitHub, release_client: GitHubReleaseClient,
    ) -> None:
        github.add_release("acme/tool", "v1", T1, {"tool-linux": b"elf"})
        specs = _specs({"name": "tool", "source": "acme/tool", "sourceActions": [{"type": "chmod"}]})

        first = await _orchestrator(tmp_path, release_client).run(specs)
        os.chmod(tmp_path / "tool-linux", 0o644)
        second = await _orchestrator(tmp_path, release_client).run(specs)

        assert len(github.downloads) == 1
        assert [p.to_dict() for p in first] == [p.to_dict() for p in second]
        # 跳过时不重新执行动作
        assert stat.S_IMODE(os.stat(tmp_path / "tool-linux").st_mode) == 0o644

    @pytest.mark.asyncio
    async def test_new_release_refetched(
        self, tmp_path: Path, github: FakeGitHub, release_client: GitHubReleaseClient,
    ) -> None:
        github.add_release("acme/tool", "v1", T1, {"tool-linux": b"v1"})
        specs = _specs({"name": "tool", "source": "acme/tool"})
        await _orchestrator(tmp_path, release_client).run(specs)

        newer = github.add_release("acme/tool", "v2", T2, {"tool-linux": b"v2"})
        await _orchestrator(tmp_path, release_client).run(specs)

        assert (tmp_path / "tool-linux").read_bytes() == b"v2"
        state = json.loads((tmp_path / "deps.json").read_text())
        assert state["acme/tool"]["url"] == newer["url"]

    @pytest.mark.asyncio
    async def test_unrelated_records_kept(
        self, tmp_path: Path, github: FakeGitHub, release_client: GitHubReleaseClient,
    ) -> None:
        (tmp_path / "deps.json").write_text(json.dumps({"old/tool": {"url": "u", "filename": "f"}}))
        github.add_release("acme/tool", "v1", T1, {"tool-linux": b"elf"})
        await _orchestrator(tmp_path, release_client).run(_specs({"source": "acme/tool"}))
        state = json.loads((tmp_path / "deps.json").read_text())
        assert set(state) == {"old/tool", "acme/tool"}


class TestFailure:
    @pytest.mark.asyncio
    async def test_state_not_written_on_failure(
        self, tmp_path: Path, github: FakeGitHub, release_client: GitHubReleaseClient,
    ) -> None:
        github.add_release("acme/ok", "v1", T1, {"ok-linux": b"x"})
        github.add_release("acme/bad", "v1", T1, {"bad-osx": b"x"})
        specs = _specs({"source": "acme/ok"}, {"source": "acme/bad"})

        with pytest.raises(ResolutionError) as exc_info:
            await _orchestrator(tmp_path, release_client).run(specs)

        assert exc_info.value.source == "acme/bad"
        assert (tmp_path / "deps.json").read_text() == "{}"

    @pytest.mark.asyncio
    async def test_duplicate_identity_rejected_before_io(
        self, tmp_path: Path, github: FakeGitHub, release_client: GitHubReleaseClient,
    ) -> None:
        specs = _specs({"name": "a", "source": "acme/tool"}, {"name": "b", "source": "acme/tool"})
        install = tmp_path / "deps"
        with pytest.raises(ConfigError, match="相同的来源"):
            await _orchestrator(install, release_client).run(specs)
        assert github.requests == []
        assert not install.exists()

    @pytest.mark.asyncio
    async def test_duplicate_after_platform_merge(
        self, tmp_path: Path, release_client: GitHubReleaseClient,
    ) -> None:
        specs = _specs(
            {"source": "acme/a", "sourcePlatformConfig": {"linux": {"source": "acme/b"}}},
            {"source": "acme/b"},
        )
        with pytest.raises(ConfigError):
            await _orchestrator(tmp_path, release_client).run(specs)

    @pytest.mark.asyncio
    async def test_move_without_location_rejected_before_io(
        self, tmp_path: Path, github: FakeGitHub, release_client: GitHubReleaseClient,
    ) -> None:
        specs = _specs({"source": "acme/tool", "sourceActions": [{"type": "move"}]})
        with pytest.raises(ConfigError, match="location"):
            await _orchestrator(tmp_path, release_client).run(specs)
        assert github.requests == []

    @pytest.mark.asyncio
    async def test_unsupported_platform(
        self, tmp_path: Path, github: FakeGitHub, release_client: GitHubReleaseClient,
    ) -> None:
        orchestrator = DependencyOrchestrator(tmp_path, release_client, config=NO_BOOTSTRAP)
        orchestrator.platform_tag = None
        with pytest.raises(ResolutionError, match="不支持的平台"):
            await orchestrator.run(_specs({"source": "acme/tool"}))
        assert github.requests == []

    @pytest.mark.asyncio
    async def test_local_path_is_file_attributed(
        self, tmp_path: Path, release_client: GitHubReleaseClient,
    ) -> None:
        stray = tmp_path / "stray.bin"
        stray.write_text("x")
        specs = _specs({"sourceType": "local", "localPath": str(stray)})
        with pytest.raises(ResolutionError, match="不是目录") as exc_info:
            await _orchestrator(tmp_path / "deps", release_client).run(specs)
        assert exc_info.value.source == str(stray)

    @pytest.mark.asyncio
    async def test_install_dir_blocked_by_file(
        self, tmp_path: Path, release_client: GitHubReleaseClient,
    ) -> None:
        blocker = tmp_path / "deps"
        blocker.write_text("x")
        with pytest.raises(ConfigError, match="无法创建安装目录"):
            await _orchestrator(blocker, release_client).run(_specs({"source": "acme/tool"}))


class TestBootstrap:
    def test_bootstrap_spec(self) -> None:
        spec = bootstrap_spec("acme/orchestrator")
        assert spec.source == "acme/orchestrator"
        assert [a.type for a in spec.source_actions] == [ActionType.CHMOD]

    @pytest.mark.asyncio
    async def test_bootstrap_resolved_first_and_recorded(
        self, tmp_path: Path, github: FakeGitHub, release_client: GitHubReleaseClient,
    ) -> None:
        github.add_release("acme/orchestrator", "v1", T1, {"orchestrator-linux": b"orc"})
        github.add_release("acme/tool", "v1", T1, {"tool-linux": b"elf"})
        config = Config(bootstrap_source="acme/orchestrator")

        resolved = await _orchestrator(tmp_path, release_client, config=config).run(
            _specs({"name": "tool", "source": "acme/tool"}),
        )

        assert github.listings[0] == "/repos/acme/orchestrator/releases"
        assert [p.extra["name"] for p in resolved] == ["tool"]
        assert stat.S_IMODE(os.stat(tmp_path / "orchestrator-linux").st_mode) == 0o755
        state = json.loads((tmp_path / "deps.json").read_text())
        assert "acme/orchestrator" in state

    @pytest.mark.asyncio
    async def test_bootstrap_failure_aborts(
        self, tmp_path: Path, github: FakeGitHub, release_client: GitHubReleaseClient,
    ) -> None:
        github.add_release("acme/tool", "v1", T1, {"tool-linux": b"elf"})
        config = Config(bootstrap_source="acme/orchestrator")
        with pytest.raises(ResolutionError, match="没有任何发布"):
            await _orchestrator(tmp_path, release_client, config=config).run(
                _specs({"source": "acme/tool"}),
            )
        assert github.downloads == []
