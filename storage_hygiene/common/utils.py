import os
from datetime import datetime
from typing import Optional
from urllib.parse import unquote


class Utils:
    """
    用途：后端通用工具类（运行路径、时间格式、URL 拼接等）
    """

    # 运行时目录覆盖变量，便于多实例部署与测试隔离
    RUNTIME_PATH_ENV: str = "STORAGE_HYGIENE_RUNTIME_PATH"

    TIME_FORMAT: str = "%Y-%m-%d %H:%M:%S"

    @staticmethod
    def get_runtime_path() -> str:
        """
        用途：获取程序运行时的根路径
        入参说明：无
        返回值说明：str - 若设置了环境变量 STORAGE_HYGIENE_RUNTIME_PATH 则返回该目录，否则返回当前工作目录
        """
        override: Optional[str] = os.environ.get(Utils.RUNTIME_PATH_ENV)
        if override:
            os.makedirs(override, exist_ok=True)
            return os.path.abspath(override)
        return os.getcwd()

    @staticmethod
    def now_str() -> str:
        """用途说明：返回当前时间的字符串形式（秒级精度）。"""
        return datetime.now().strftime(Utils.TIME_FORMAT)

    @staticmethod
    def parse_time(value: Optional[str]) -> Optional[datetime]:
        """
        用途说明：将持久化的时间字符串解析为 datetime。
        入参说明：value (Optional[str]) - 时间字符串，格式为 %Y-%m-%d %H:%M:%S
        返回值说明：Optional[datetime] - 解析失败或为空时返回 None
        """
        if not value:
            return None
        try:
            return datetime.strptime(value, Utils.TIME_FORMAT)
        except ValueError:
            return None

    @staticmethod
    def decode_url(url: str) -> str:
        """
        用途说明：对 URL 做百分号解码，非法转义序列原样保留。
        入参说明：url (str) - 原始 URL
        返回值说明：str - 解码后的 URL
        """
        try:
            return unquote(url, errors="strict")
        except UnicodeDecodeError:
            return url

    @staticmethod
    def join_base_url(base_url: str, path: str) -> str:
        """
        用途说明：将站内根相对路径与站点外部访问地址拼接为绝对地址。
        入参说明：
            base_url (str): 外部访问地址，如 https://example.com
            path (str): 以 / 开头的站内路径
        返回值说明：str - 拼接结果；若未配置外部地址或 path 已是完整地址，则原样返回 path
        """
        if not base_url or path.startswith("http://") or path.startswith("https://"):
            return path
        if not path.startswith("/"):
            path = "/" + path
        return base_url.rstrip("/") + path

    @staticmethod
    def format_size(size: int) -> str:
        """用途说明：将字节数格式化为可读字符串，用于日志输出。"""
        value: float = float(size)
        for unit in ("B", "KB", "MB"):
            if value < 1024:
                return f"{value:.1f}{unit}"
            value /= 1024
        return f"{value:.1f}GB"
