import logging
import os
import sys
from datetime import datetime
from typing import Optional

from storage_hygiene.common.utils import Utils

# 自定义等级：API 设为 25，介于 INFO(20) 与 WARNING(30) 之间
LOG_LEVEL_API: int = 25
logging.addLevelName(LOG_LEVEL_API, "API")


class LogUtils:
    """
    用途说明：统一日志工具类，对外只暴露 DEBUG、INFO、API、ERROR 四种等级。
    日志同时输出到终端与 <运行目录>/data/log/<日期>.log，跨天自动切换文件。
    未调用 init 之前的日志会被直接丢弃。
    """
    LOGGER_NAME: str = "storage_hygiene"
    API_START: str = "接口请求"

    _logger: Optional[logging.Logger] = None
    _current_log_date: str = ""
    _file_handler: Optional[logging.FileHandler] = None
    _formatter: logging.Formatter = logging.Formatter(
        fmt='%(asctime)s:%(msecs)03d - %(levelname)s - [%(threadName)s] %(message)s',
        datefmt='%Y/%m/%d-%H:%M:%S'
    )

    @staticmethod
    def get_log_dir() -> str:
        """
        用途说明：获取日志目录，不存在时自动创建。
        返回值说明：str - 日志目录绝对路径
        """
        log_dir: str = os.path.join(Utils.get_runtime_path(), "data", "log")
        os.makedirs(log_dir, exist_ok=True)
        return log_dir

    @classmethod
    def _switch_file_handler(cls, date_str: str) -> None:
        """
        用途说明：按日期切换文件 handler，旧 handler 先移除并关闭。
        入参说明：date_str (str) - %Y%m%d 格式日期
        """
        if cls._logger is None:
            return

        if cls._file_handler:
            cls._logger.removeHandler(cls._file_handler)
            cls._file_handler.close()

        log_path: str = os.path.join(cls.get_log_dir(), f"{date_str}.log")
        cls._file_handler = logging.FileHandler(log_path, encoding='utf-8')
        cls._file_handler.setFormatter(cls._formatter)
        cls._logger.addHandler(cls._file_handler)
        cls._current_log_date = date_str

    @classmethod
    def init(cls, level: int = logging.DEBUG) -> None:
        """
        用途说明：初始化日志器（重复调用无副作用）。
        入参说明：level (int) - 初始日志级别
        """
        if cls._logger is not None:
            return
        cls._logger = logging.getLogger(cls.LOGGER_NAME)
        cls._logger.setLevel(level)
        cls._logger.propagate = False

        console_handler: logging.StreamHandler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(cls._formatter)
        cls._logger.addHandler(console_handler)

        cls._switch_file_handler(datetime.now().strftime('%Y%m%d'))

    @classmethod
    def set_level(cls, debug_api_enabled: bool) -> None:
        """
        用途说明：动态调整日志级别。关闭调试时只保留 ERROR。
        入参说明：debug_api_enabled (bool) - 是否输出 DEBUG/INFO/API 日志
        """
        if cls._logger:
            cls._logger.setLevel(logging.DEBUG if debug_api_enabled else logging.ERROR)

    @classmethod
    def _emit(cls, level: int, message: str) -> None:
        if cls._logger is None:
            return
        today: str = datetime.now().strftime('%Y%m%d')
        if today != cls._current_log_date:
            cls._switch_file_handler(today)
        cls._logger.log(level, message)

    @classmethod
    def debug(cls, message: str) -> None:
        """用途说明：输出 DEBUG 日志。"""
        cls._emit(logging.DEBUG, message)

    @classmethod
    def info(cls, message: str) -> None:
        """用途说明：输出 INFO 日志。"""
        cls._emit(logging.INFO, message)

    @classmethod
    def api(cls, message: str) -> None:
        """用途说明：输出 API 日志（自定义等级 25）。"""
        cls._emit(LOG_LEVEL_API, f"{cls.API_START} - {message}")

    @classmethod
    def error(cls, message: str) -> None:
        """用途说明：输出 ERROR 日志。"""
        cls._emit(logging.ERROR, message)
