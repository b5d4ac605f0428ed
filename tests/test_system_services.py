from datetime import datetime, timedelta

import schedule

from storage_hygiene.common.heartbeat_service import HeartbeatService
from storage_hygiene.common.utils import Utils
from storage_hygiene.db.db_constants import DBConstants
from storage_hygiene.db.processor_manager import processor_manager
from storage_hygiene.model.db.cleanup_log_db_model import CleanupLogDBModel
from storage_hygiene.model.db.processing_log_db_model import ProcessingLogDBModel
from storage_hygiene.setting.setting_service import settingService
from storage_hygiene.system.log_cleanup_service import LogCleanupService
from storage_hygiene.system.scan_status_initializer import ScanStatusInitializer


def _days_ago(days):
    return (datetime.now() - timedelta(days=days)).strftime(Utils.TIME_FORMAT)


def _jobs():
    return [job for job in schedule.jobs if LogCleanupService.SCHEDULE_TAG in job.tags]


class TestScanStatusInitializer:
    def test_interrupted_scans_become_error(self):
        for scan_type in (DBConstants.ScanType.REFERENCE, DBConstants.ScanType.DUPLICATE):
            status = processor_manager.scan_status_processor.get_or_create(scan_type)
            status.phase = DBConstants.ScanPhase.SCANNING
            processor_manager.scan_status_processor.update(status)
        assert sorted(ScanStatusInitializer.running_scan_types()) == \
            sorted([DBConstants.ScanType.REFERENCE, DBConstants.ScanType.DUPLICATE])

        fixed = ScanStatusInitializer.run()

        assert fixed == 2
        assert ScanStatusInitializer.running_scan_types() == []
        status = processor_manager.scan_status_processor.get(DBConstants.ScanType.REFERENCE)
        assert status.phase == DBConstants.ScanPhase.ERROR
        assert status.error_message == ScanStatusInitializer.SCAN_INTERRUPTED_MESSAGE

    def test_interrupted_batch_becomes_error(self):
        status = processor_manager.batch_status_processor.get_or_create()
        status.task_id = "20240101_000000"
        status.phase = DBConstants.BatchPhase.CANCELLING
        processor_manager.batch_status_processor.update(status)

        assert ScanStatusInitializer.run() == 1

        status = processor_manager.batch_status_processor.get()
        assert status.phase == DBConstants.BatchPhase.ERROR
        assert status.error_message == ScanStatusInitializer.BATCH_INTERRUPTED_MESSAGE
        assert status.end_time is not None

    def test_finished_states_untouched(self):
        status = processor_manager.scan_status_processor.get_or_create(DBConstants.ScanType.DUPLICATE)
        status.phase = DBConstants.ScanPhase.COMPLETED
        processor_manager.scan_status_processor.update(status)

        assert ScanStatusInitializer.run() == 0
        assert processor_manager.scan_status_processor.get(DBConstants.ScanType.DUPLICATE).phase == \
            DBConstants.ScanPhase.COMPLETED
        assert processor_manager.batch_status_processor.get() is None


class TestLogCleanupService:
    def teardown_method(self):
        schedule.clear(LogCleanupService.SCHEDULE_TAG)
        HeartbeatService.unregister_task(LogCleanupService.TASK_NAME)

    def test_cleanup_removes_old_rows(self):
        for days, asset_id in ((40, "old"), (1, "new")):
            processor_manager.processing_log_processor.insert(ProcessingLogDBModel(
                task_id="t", asset_id=asset_id, status=DBConstants.ProcessingStatus.SUCCEEDED,
                processed_at=_days_ago(days)
            ))
            processor_manager.cleanup_log_processor.insert(CleanupLogDBModel(
                asset_id=asset_id, reason=DBConstants.CleanupReason.DUPLICATE, deleted_at=_days_ago(days)
            ))

        deleted = LogCleanupService.cleanup()

        assert deleted == {"processing_logs": 1, "cleanup_logs": 1}
        assert [log.asset_id for log in processor_manager.processing_log_processor.get_by_task("t")] == ["new"]
        assert [log.asset_id for log in processor_manager.cleanup_log_processor.get_all()] == ["new"]

    def test_explicit_retention(self):
        processor_manager.cleanup_log_processor.insert(CleanupLogDBModel(
            asset_id="a", reason=DBConstants.CleanupReason.UNREFERENCED, deleted_at=_days_ago(3)
        ))
        assert LogCleanupService.cleanup(retention_days=7)["cleanup_logs"] == 0
        assert LogCleanupService.cleanup(retention_days=2)["cleanup_logs"] == 1

    def test_refresh_config_schedules_job(self):
        settingService.get_config().log.log_cleanup_time = "03:30"
        LogCleanupService.refresh_config()

        jobs = _jobs()
        assert len(jobs) == 1
        assert LogCleanupService.current_schedule() == "03:30"
        assert HeartbeatService.is_registered(LogCleanupService.TASK_NAME)

        LogCleanupService.refresh_config()
        assert len(_jobs()) == 1

    def test_invalid_time_unregisters(self):
        LogCleanupService.refresh_config()
        settingService.get_config().log.log_cleanup_time = "25:99"
        LogCleanupService.refresh_config()

        assert _jobs() == []
        assert LogCleanupService.current_schedule() == ""
        assert not HeartbeatService.is_registered(LogCleanupService.TASK_NAME)
