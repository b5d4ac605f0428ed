import os
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Optional


class ThreadPoolManager:
    """
    用途：全局共享的后台线程池（单例），扫描与批量处理等长任务统一从这里提交，
    与 waitress 的请求处理线程相互独立。
    """

    _instance: Optional['ThreadPoolManager'] = None
    _executor: Optional[ThreadPoolExecutor] = None

    def __new__(cls) -> 'ThreadPoolManager':
        """
        用途：单例构造，首次调用时创建线程池。
        返回值说明：ThreadPoolManager - 单例实例
        """
        if cls._instance is None:
            cls._instance = super(ThreadPoolManager, cls).__new__(cls)
            # 后台长任务数量有限，取 16 与 核心数*4 的较小值
            max_workers: int = min(16, (os.cpu_count() or 4) * 4)
            cls._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="HygienePool")
        return cls._instance

    @staticmethod
    def submit(fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Future:
        """
        用途：向全局线程池提交一个后台任务。
        入参说明：
            fn (Callable): 目标函数
            *args / **kwargs: 透传给目标函数的参数
        返回值说明：Future - 任务句柄
        """
        manager: ThreadPoolManager = ThreadPoolManager()
        return manager._executor.submit(fn, *args, **kwargs)

    @staticmethod
    def shutdown(wait: bool = True) -> None:
        """
        用途：关闭全局线程池，通常在进程退出前调用。
        入参说明：wait (bool) - 是否等待已提交任务结束
        """
        if ThreadPoolManager._executor:
            ThreadPoolManager._executor.shutdown(wait=wait)
            ThreadPoolManager._executor = None
            ThreadPoolManager._instance = None
