from datetime import datetime, timedelta
from typing import Dict, Optional

import schedule

from storage_hygiene.common.heartbeat_service import HeartbeatService
from storage_hygiene.common.log_utils import LogUtils
from storage_hygiene.common.utils import Utils
from storage_hygiene.db.processor_manager import processor_manager
from storage_hygiene.setting.setting_models import LogSettings
from storage_hygiene.setting.setting_service import settingService


class LogCleanupService:
    """
    用途：后台定时任务服务，每天在 log_cleanup_time 清理超过保留天数的处理日志与清理日志。
    通过注册到全局 HeartbeatService 驱动 schedule 检查。
    """
    _current_time_str: str = ""
    TASK_NAME: str = "scheduler_log_cleanup_task"
    SCHEDULE_TAG: str = "log_cleanup"

    @classmethod
    def cleanup(cls, retention_days: Optional[int] = None) -> Dict[str, int]:
        """
        用途说明：删除早于保留期的日志记录。
        入参说明：retention_days (Optional[int]) - 保留天数，None 时读取配置
        返回值说明：Dict[str, int] - 各类日志删除条数
        """
        if retention_days is None:
            retention_days = settingService.get_config().log.log_retention_days
        cutoff: str = (datetime.now() - timedelta(days=retention_days)).strftime(Utils.TIME_FORMAT)

        deleted: Dict[str, int] = {
            "processing_logs": processor_manager.processing_log_processor.delete_before(cutoff),
            "cleanup_logs": processor_manager.cleanup_log_processor.delete_before(cutoff),
        }
        LogUtils.info(f"日志清理完成（保留 {retention_days} 天，截止 {cutoff}）：处理日志 {deleted['processing_logs']} 条，"
                      f"清理日志 {deleted['cleanup_logs']} 条")
        return deleted

    @classmethod
    def _trigger_cleanup(cls) -> None:
        LogUtils.info("定时任务：到达日志清理时间，开始清理...")
        try:
            cls.cleanup()
        except Exception as e:
            LogUtils.error(f"定时任务：日志清理失败: {e}")

    @classmethod
    def refresh_config(cls) -> None:
        """
        用途说明：根据最新配置重置定时清理任务，并确保已注册到心跳服务。
        """
        config: LogSettings = settingService.get_config().log
        schedule.clear(cls.SCHEDULE_TAG)
        try:
            schedule.every().day.at(config.log_cleanup_time).do(cls._trigger_cleanup).tag(cls.SCHEDULE_TAG)
        except schedule.ScheduleValueError as e:
            LogUtils.error(f"日志清理时间配置无效 ({config.log_cleanup_time}): {e}")
            cls._current_time_str = ""
            HeartbeatService.unregister_task(cls.TASK_NAME)
            return

        cls._current_time_str = config.log_cleanup_time
        LogUtils.info(f"已更新日志清理任务配置：每天 {config.log_cleanup_time}，保留 {config.log_retention_days} 天")
        HeartbeatService.register_task(cls.TASK_NAME, cls._on_heartbeat)

    @classmethod
    def current_schedule(cls) -> str:
        return cls._current_time_str

    @classmethod
    def _on_heartbeat(cls) -> None:
        """
        用途说明：心跳服务每秒调用的回调函数，用于驱动 schedule 检查待执行任务。
        """
        try:
            schedule.run_pending()
        except Exception as e:
            LogUtils.error(f"定时任务调度检查异常: {e}")
