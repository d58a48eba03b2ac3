"""统一异常体系

所有业务异常继承 DevSetupError。CLI 层据此输出友好提示并以非零状态退出。
"""

from __future__ import annotations


class DevSetupError(Exception):
    """框架基础异常"""

    code: str = "UNKNOWN"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        # 出错的来源标识（仓库或本地路径），由编排器补充
        self.source = ""


class ConfigError(DevSetupError):
    """配置缺失或内容无效（localPath / sourceFilePattern / move.location 等）"""

    code = "CONFIG_ERROR"


class ResolutionError(DevSetupError):
    """未找到匹配的资源、平台不支持或本地路径不存在"""

    code = "RESOLUTION_ERROR"


class TransportError(DevSetupError):
    """下载或解压等外部操作失败"""

    code = "TRANSPORT_ERROR"

    def __init__(
        self, message: str, *, returncode: int | None = None, stderr: str = "",
    ) -> None:
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class StateCorruptionError(DevSetupError):
    """依赖状态文件无法解析"""

    code = "STATE_CORRUPTION"


class ValidationError(DevSetupError):
    """输入数据校验失败"""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, details: list[str] | None = None) -> None:
        super().__init__(message)
        self.details = details or []
