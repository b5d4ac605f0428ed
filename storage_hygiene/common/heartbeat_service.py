import threading
import time
from typing import Callable, Dict, List, Optional

from storage_hygiene.common.log_utils import LogUtils
from storage_hygiene.common.thread_pool import ThreadPoolManager


class HeartbeatService:
    """
    用途说明：全局心跳（单例），按固定间隔依次调用已注册的回调，
    目前用于驱动 schedule 库的定时任务检查。
    """
    _instance: Optional['HeartbeatService'] = None
    _lock: threading.Lock = threading.Lock()

    HEARTBEAT_INTERVAL: float = 1.0

    _tasks: Dict[str, Callable[[], None]] = {}
    _running: bool = False
    _task_lock: threading.Lock = threading.Lock()

    def __new__(cls) -> 'HeartbeatService':
        with cls._lock:
            if cls._instance is None:
                cls._instance = super(HeartbeatService, cls).__new__(cls)
        return cls._instance

    @classmethod
    def register_task(cls, name: str, task: Callable[[], None]) -> None:
        """
        用途说明：注册心跳回调，同名任务只保留第一次注册。
        入参说明：
            name (str): 任务唯一标识
            task (Callable): 回调函数
        """
        with cls._task_lock:
            if name in cls._tasks:
                return
            cls._tasks[name] = task
            LogUtils.debug(f"心跳服务：已注册任务 [{name}]")

    @classmethod
    def unregister_task(cls, name: str) -> None:
        """用途说明：移除心跳回调，不存在时忽略。"""
        with cls._task_lock:
            if cls._tasks.pop(name, None) is not None:
                LogUtils.debug(f"心跳服务：已移除任务 [{name}]")

    @classmethod
    def is_registered(cls, name: str) -> bool:
        with cls._task_lock:
            return name in cls._tasks

    @classmethod
    def start(cls) -> None:
        """
        用途说明：启动心跳循环（重复调用无副作用），由 main.start_server 调用。
        """
        with cls._lock:
            if cls._running:
                return
            cls._running = True
        ThreadPoolManager.submit(cls._run_loop)
        LogUtils.info("心跳服务已启动")

    @classmethod
    def stop(cls) -> None:
        with cls._lock:
            cls._running = False
        LogUtils.info("心跳服务已停止")

    @classmethod
    def tick(cls) -> None:
        """
        用途说明：执行一次所有回调。单个回调异常只记录日志，不影响其他回调。
        """
        with cls._task_lock:
            snapshot: List[Callable[[], None]] = list(cls._tasks.values())
        for task in snapshot:
            try:
                task()
            except Exception as e:
                LogUtils.error(f"心跳任务执行异常: {e}")

    @classmethod
    def _run_loop(cls) -> None:
        while cls._running:
            cls.tick()
            time.sleep(cls.HEARTBEAT_INTERVAL)
