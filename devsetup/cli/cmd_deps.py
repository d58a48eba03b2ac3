"""CLI — 依赖准备命令"""

from __future__ import annotations

import asyncio
from pathlib import Path

import click

from devsetup.core.config import Config
from devsetup.core.dep.state import DependencyStateStore
from devsetup.core.exceptions import DevSetupError
from devsetup.core.platform import PLATFORM_TAGS, detect_platform
from devsetup.services.setup_service import SetupService


def register(group: click.Group) -> None:
    group.add_command(setup)
    group.add_command(status)
    group.add_command(show_platform)


def _fail(e: DevSetupError) -> click.ClickException:
    prefix = f"{e.source}: " if e.source else ""
    return click.ClickException(f"[{e.code}] {prefix}{e}")


@click.command()
@click.option("--config", "-c", "config_file", default=None, help="编排配置路径（默认 orchestrator.json5）")
@click.option("--settings", default="devsetup.yml", help="devsetup 自身配置文件")
@click.option("--install-dir", default=None, help="安装目录（覆盖 devDependenciesLocation）")
@click.option("--output", default=None, help="生成的配置文件名（写入安装目录）")
@click.option("--api-url", default=None, help="GitHub 兼容 API 地址")
@click.option("--token", envvar="GITHUB_TOKEN", default=None, help="GitHub 令牌（默认读 GITHUB_TOKEN）")
@click.option("--platform", "platform_tag", type=click.Choice(PLATFORM_TAGS), default=None,
              help="指定平台标签（默认自动识别）")
@click.option("--no-bootstrap", is_flag=True, help="跳过编排器自身的拉取")
def setup(
    config_file: str | None, settings: str, install_dir: str | None, output: str | None,
    api_url: str | None, token: str | None, platform_tag: str | None, no_bootstrap: bool,
) -> None:
    """拉取全部依赖并生成带 exec 路径的编排配置"""
    try:
        cfg = Config.from_file(settings).with_overrides(
            config_file=config_file,
            install_dir=install_dir,
            output_file=output,
            api_url=api_url,
            github_token=token,
            bootstrap_source="" if no_bootstrap else None,
        )
        report = asyncio.run(SetupService(cfg, platform_tag=platform_tag).execute())
    except DevSetupError as e:
        raise _fail(e) from e

    for p in report.processes:
        name = str(p.extra.get("name", ""))
        marker = " (excluded)" if p.exclude else ""
        click.echo(f"  {name:20s} {p.exec_path}{marker}")
    click.echo(f"就绪: {report.output_path} (platform={report.platform_tag})")


@click.command()
@click.option("--install-dir", default=".", help="安装目录")
@click.option("--state-file", default="deps.json", help="依赖状态文件名")
def status(install_dir: str, state_file: str) -> None:
    """列出已记录的依赖"""
    store = DependencyStateStore(Path(install_dir), state_file)
    if not store.path.exists():
        click.echo(f"尚未生成依赖状态: {store.path}")
        return
    try:
        state = store.load()
    except DevSetupError as e:
        raise _fail(e) from e
    if not state:
        click.echo("没有已记录的依赖。")
        return
    for identity, record in sorted(state.items()):
        origin = record.url or record.path
        click.echo(f"  {identity:30s} {record.filename:30s} {origin}")


@click.command(name="platform")
def show_platform() -> None:
    """显示当前平台标签"""
    tag = detect_platform()
    if tag is None:
        raise click.ClickException("不支持的平台")
    click.echo(tag)
