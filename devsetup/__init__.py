"""devsetup - 本地开发环境二进制依赖配置工具"""

__version__ = "0.1.0"
