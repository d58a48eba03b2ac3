"""平台识别

将宿主机 操作系统 + CPU 架构 映射为固定的平台标签，用于挑选发布产物。
"""

from __future__ import annotations

import platform

OSX_ARM = "osx-arm"
OSX_X64 = "osx-x64"
WIN = "win"
LINUX_ARM = "linux-arm"
LINUX = "linux"

PLATFORM_TAGS = (OSX_ARM, OSX_X64, WIN, LINUX_ARM, LINUX)

# platform.machine() 在 macOS 上返回 arm64，在 Linux 上返回 aarch64
_ARM64_MACHINES = frozenset(("arm64", "aarch64"))


def detect_platform(system: str | None = None, machine: str | None = None) -> str | None:
    """返回当前平台标签，不支持的操作系统返回 None

    参数缺省时读取 platform.system() / platform.machine()。
    """
    system = platform.system() if system is None else system
    machine = platform.machine() if machine is None else machine
    is_arm = machine.lower() in _ARM64_MACHINES

    if system == "Darwin":
        return OSX_ARM if is_arm else OSX_X64
    if system == "Windows":
        return WIN
    if system == "Linux":
        return LINUX_ARM if is_arm else LINUX
    return None
