from typing import List

from storage_hygiene.common.base_scan_service import BaseScanService
from storage_hygiene.common.log_utils import LogUtils
from storage_hygiene.common.retry_utils import retry_on_conflict
from storage_hygiene.common.utils import Utils
from storage_hygiene.db.db_constants import DBConstants
from storage_hygiene.db.processor_manager import processor_manager
from storage_hygiene.model.db.batch_status_db_model import BatchStatusDBModel
from storage_hygiene.model.db.scan_status_db_model import ScanStatusDBModel


class ScanStatusInitializer:
    """
    用途说明：服务启动时的状态修正。进程重启后不可能还有扫描或批量任务在运行，
    因此把仍处于运行阶段的状态统一改为 ERROR，避免界面一直显示"进行中"。
    """

    SCAN_INTERRUPTED_MESSAGE: str = "扫描被中断（服务重启）"
    BATCH_INTERRUPTED_MESSAGE: str = "处理被中断（服务重启）"

    # 批量任务中需要修正的阶段
    BATCH_RUNNING_PHASES: tuple = DBConstants.BatchPhase.ACTIVE + (DBConstants.BatchPhase.CANCELLING,)

    @classmethod
    def run(cls) -> int:
        """
        用途说明：执行一次启动修正。
        返回值说明：int - 被修正的状态记录数
        """
        fixed: int = 0
        for scan_type in DBConstants.ScanType.ALL:
            status: ScanStatusDBModel = processor_manager.scan_status_processor.get_or_create(scan_type)
            if status.phase != DBConstants.ScanPhase.SCANNING:
                continue
            if BaseScanService._update_status(scan_type, cls._interrupt_scan) is not None:
                fixed += 1
                LogUtils.info(f"[{scan_type}] 扫描状态为 SCANNING，已修正为 ERROR")

        batch_status = processor_manager.batch_status_processor.get()
        if batch_status is not None and batch_status.phase in cls.BATCH_RUNNING_PHASES:
            if cls._interrupt_batch() is not None:
                fixed += 1
                LogUtils.info(f"批量任务 {batch_status.task_id} 状态为 {batch_status.phase}，已修正为 ERROR")

        LogUtils.info(f"启动状态检查完成，修正 {fixed} 条记录")
        return fixed

    @classmethod
    def _interrupt_scan(cls, status: ScanStatusDBModel) -> None:
        # 重试时读到的可能已不是 SCANNING
        if status.phase == DBConstants.ScanPhase.SCANNING:
            status.phase = DBConstants.ScanPhase.ERROR
            status.error_message = cls.SCAN_INTERRUPTED_MESSAGE

    @classmethod
    @retry_on_conflict()
    def _interrupt_batch(cls) -> BatchStatusDBModel:
        status: BatchStatusDBModel = processor_manager.batch_status_processor.get_or_create()
        if status.phase in cls.BATCH_RUNNING_PHASES:
            status.phase = DBConstants.BatchPhase.ERROR
            status.error_message = cls.BATCH_INTERRUPTED_MESSAGE
            status.end_time = Utils.now_str()
        return processor_manager.batch_status_processor.update(status)

    @staticmethod
    def running_scan_types() -> List[str]:
        """用途说明：返回当前处于 SCANNING 的扫描类型（启动日志与测试使用）。"""
        return [
            s.scan_type for s in processor_manager.scan_status_processor.get_all()
            if s.phase == DBConstants.ScanPhase.SCANNING
        ]
