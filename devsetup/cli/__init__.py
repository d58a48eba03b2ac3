"""devsetup 命令行接口

CLI 按领域拆分为子模块，每个模块注册自己的命令到 main group。
"""

import os

import click

from devsetup import __version__
from devsetup.utils.logger import setup_logging


@click.group()
@click.version_option(version=__version__)
def main() -> None:
    """devsetup - 本地开发环境二进制依赖配置工具"""
    setup_logging(
        level=os.getenv("DEVSETUP_LOG_LEVEL", "INFO"),
        json_output=os.getenv("DEVSETUP_LOG_JSON", "") == "1",
    )


# 注册各领域子命令
from devsetup.cli.cmd_deps import register as _reg_deps  # noqa: E402

_reg_deps(main)
