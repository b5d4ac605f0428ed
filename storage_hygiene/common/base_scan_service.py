import threading
import traceback
import uuid
from abc import ABC, abstractmethod
from concurrent.futures import Future, wait
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional

from storage_hygiene.common.exceptions import ConcurrencyConflictError, StateConflictError, StorageHygieneError
from storage_hygiene.common.log_utils import LogUtils
from storage_hygiene.common.progress_context import TaskProgress
from storage_hygiene.common.retry_utils import retry_on_conflict
from storage_hygiene.common.thread_pool import ThreadPoolManager
from storage_hygiene.common.utils import Utils
from storage_hygiene.db.db_constants import DBConstants
from storage_hygiene.db.processor_manager import processor_manager
from storage_hygiene.model.db.scan_status_db_model import ScanStatusDBModel
from storage_hygiene.setting.setting_service import settingService


class BaseScanService(ABC):
    """
    用途说明：扫描服务基类，封装"触发即返回、后台执行、完成后回写状态"的生命周期：
        IDLE -> SCANNING -> COMPLETED / ERROR
    扫描进行中再次触发会被拒绝，除非距开始时间已超过 scan_timeout_minutes（视为卡死，直接接管）。
    子类只需实现 _run_pass，并在结束时调用 _complete_pass 回写统计。
    """
    SCAN_TYPE: str = ""

    def __init__(self) -> None:
        self._lock: threading.Lock = threading.Lock()
        self._pass_token: Optional[str] = None
        self._progress: Optional[TaskProgress] = None
        self._future: Optional[Future] = None

    # ------------------------------------------------------------------ 状态读取

    def get_status(self) -> ScanStatusDBModel:
        """
        用途说明：获取扫描状态；扫描进行中时合并内存中的实时进度。
        返回值说明：ScanStatusDBModel
        """
        status: ScanStatusDBModel = processor_manager.scan_status_processor.get_or_create(self.SCAN_TYPE)
        with self._lock:
            progress: Optional[TaskProgress] = self._progress
        if status.phase == DBConstants.ScanPhase.SCANNING and progress is not None:
            status.counters.update(self._live_counters(progress))
        return status

    def _live_counters(self, progress: TaskProgress) -> Dict[str, int]:
        snapshot = progress.snapshot()
        return {"scanned": snapshot.processed, "total": snapshot.total}

    @staticmethod
    def is_stuck(status: ScanStatusDBModel, timeout_minutes: int) -> bool:
        """
        用途说明：判断处于 SCANNING 的状态是否已卡死。
        入参说明：
            status (ScanStatusDBModel): 当前状态
            timeout_minutes (int): 超时分钟数
        返回值说明：bool - 没有开始时间或已超时返回 True
        """
        started: Optional[datetime] = Utils.parse_time(status.start_time)
        if started is None:
            return True
        return datetime.now() - started > timedelta(minutes=timeout_minutes)

    # ------------------------------------------------------------------ 触发

    @staticmethod
    def claim_scan(scan_type: str) -> ScanStatusDBModel:
        """
        用途说明：把指定类型的扫描状态切换为 SCANNING（触发扫描的同步部分）。
        入参说明：scan_type (str) - 扫描类型
        返回值说明：ScanStatusDBModel - 切换后的状态
        异常说明：扫描进行中且未超时，或状态被并发修改时抛出 StateConflictError
        """
        timeout_minutes: int = settingService.get_config().scan.scan_timeout_minutes
        status: ScanStatusDBModel = processor_manager.scan_status_processor.get_or_create(scan_type)

        if status.phase == DBConstants.ScanPhase.SCANNING:
            if not BaseScanService.is_stuck(status, timeout_minutes):
                raise StateConflictError("扫描正在进行中")
            LogUtils.info(f"[{scan_type}] 检测到扫描已超过 {timeout_minutes} 分钟未完成，视为卡死并重新开始")

        status.phase = DBConstants.ScanPhase.SCANNING
        status.start_time = Utils.now_str()
        status.error_message = None
        try:
            return processor_manager.scan_status_processor.update(status)
        except ConcurrencyConflictError:
            raise StateConflictError("扫描状态已被其他请求修改，请稍后重试")

    def start_scan(self) -> ScanStatusDBModel:
        """
        用途说明：触发一轮扫描：同步切换状态后立即返回，扫描本身在全局线程池中执行。
        返回值说明：ScanStatusDBModel - 切换为 SCANNING 后的状态
        """
        with self._lock:
            status: ScanStatusDBModel = self.claim_scan(self.SCAN_TYPE)
            token: str = uuid.uuid4().hex
            progress: TaskProgress = TaskProgress()
            self._pass_token = token
            self._progress = progress
            self._future = self._start_task(self._execute_pass, token, progress)
        LogUtils.info(f"[{self.SCAN_TYPE}] 扫描已启动")
        return status

    def _start_task(self, task_callable: Callable[..., Any], *args: Any) -> Future:
        """
        用途说明：提交后台任务；线程池不可用时把状态置为 ERROR 并向上抛出。
        """
        try:
            return ThreadPoolManager.submit(task_callable, *args)
        except RuntimeError as e:
            LogUtils.error(f"[{self.SCAN_TYPE}] 提交后台任务失败: {e}")
            self._update_status(self.SCAN_TYPE, lambda s: self._apply_error(s, f"提交后台任务失败: {e}"))
            raise StorageHygieneError("后台任务提交失败")

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        用途说明：等待当前后台扫描结束（命令行同步调用与测试使用）。
        入参说明：timeout (Optional[float]) - 最长等待秒数
        返回值说明：bool - 是否已结束
        """
        with self._lock:
            future: Optional[Future] = self._future
        if future is None:
            return True
        done, _ = wait([future], timeout=timeout)
        return bool(done)

    def is_current(self, token: str) -> bool:
        with self._lock:
            return self._pass_token == token

    # ------------------------------------------------------------------ 后台执行

    def _execute_pass(self, token: str, progress: TaskProgress) -> None:
        try:
            self._run_pass(token, progress)
        except Exception as e:
            LogUtils.error(f"[{self.SCAN_TYPE}] 扫描失败: {e}\n{traceback.format_exc()}")
            if self.is_current(token):
                self._on_pass_error(str(e))
            else:
                LogUtils.info(f"[{self.SCAN_TYPE}] 已被新一轮扫描接管，忽略旧扫描的失败")
        finally:
            with self._lock:
                if self._pass_token == token:
                    self._progress = None

    @abstractmethod
    def _run_pass(self, token: str, progress: TaskProgress) -> None:
        """
        用途说明：一轮扫描的具体逻辑，由子类实现；抛出的异常会使状态变为 ERROR。
        入参说明：
            token (str): 本轮扫描标识，可用 is_current 判断是否已被接管
            progress (TaskProgress): 本轮进度上下文
        """

    def _on_pass_error(self, message: str) -> None:
        self._update_status(self.SCAN_TYPE, lambda s: self._apply_error(s, message))

    def _complete_pass(self, token: str, scan_type: str, counters: Dict[str, int]) -> bool:
        """
        用途说明：扫描成功结束时回写状态（COMPLETED + 统计值）；若本轮已被接管则放弃回写。
        入参说明：
            token (str): 本轮扫描标识
            scan_type (str): 需要回写的扫描类型
            counters (Dict[str, int]): 统计值
        返回值说明：bool - 是否已回写
        """
        if not self.is_current(token):
            LogUtils.info(f"[{scan_type}] 本轮扫描已被接管，丢弃过期结果")
            return False

        def mutate(status: ScanStatusDBModel) -> None:
            status.phase = DBConstants.ScanPhase.COMPLETED
            status.last_scan_time = Utils.now_str()
            status.counters = dict(counters)
            status.error_message = None

        return self._update_status(scan_type, mutate) is not None

    @staticmethod
    def _apply_error(status: ScanStatusDBModel, message: str) -> None:
        status.phase = DBConstants.ScanPhase.ERROR
        status.error_message = message

    @staticmethod
    @retry_on_conflict()
    def _update_status(scan_type: str, mutate: Callable[[ScanStatusDBModel], None]) -> ScanStatusDBModel:
        """
        用途说明：读取最新状态、应用修改并按版本号写回，冲突时由装饰器退避重试，耗尽后放弃。
        入参说明：
            scan_type (str): 扫描类型
            mutate (Callable): 修改函数，直接修改传入的状态对象
        返回值说明：ScanStatusDBModel - 写回后的状态；放弃时为 None
        """
        status: ScanStatusDBModel = processor_manager.scan_status_processor.get_or_create(scan_type)
        mutate(status)
        return processor_manager.scan_status_processor.update(status)

    def reset_status(self, scan_type: Optional[str] = None) -> None:
        """用途说明：清空结果后把状态重置为 IDLE。"""
        def mutate(status: ScanStatusDBModel) -> None:
            status.phase = DBConstants.ScanPhase.IDLE
            status.start_time = None
            status.last_scan_time = None
            status.counters = {}
            status.error_message = None

        self._update_status(scan_type or self.SCAN_TYPE, mutate)
