import threading

import pytest

from storage_hygiene.batch.batch_processing_service import BatchProcessingService
from storage_hygiene.common.exceptions import StateConflictError, ValidationError
from storage_hygiene.db.db_constants import DBConstants
from storage_hygiene.db.processor_manager import processor_manager
from storage_hygiene.setting.setting_service import settingService
from storage_hygiene.storage.base_asset_inventory import StorageBackend
from storage_hygiene.transform.base_transformer import BaseTransformer, TransformResult, TransformStatus


class HalvingTransformer(BaseTransformer):
    """把内容截成一半，模拟压缩。"""

    def __init__(self, enabled=True):
        self.enabled = enabled
        self.processed = []
        self._lock = threading.Lock()

    def is_enabled(self, config):
        return self.enabled

    def is_supported(self, media_type):
        return media_type.startswith("image/")

    def process(self, data, filename, media_type, config):
        with self._lock:
            self.processed.append(filename)
        if filename.startswith("skip"):
            return TransformResult.skipped("处理后文件未变小")
        return TransformResult(
            status=TransformStatus.SUCCEEDED,
            result_bytes=data[:len(data) // 2],
            result_filename=filename.rsplit(".", 1)[0] + ".webp",
            result_media_type="image/webp"
        )


class BlockingTransformer(HalvingTransformer):
    def __init__(self):
        super().__init__()
        self.started = threading.Event()
        self.release = threading.Event()

    def process(self, data, filename, media_type, config):
        self.started.set()
        self.release.wait(10)
        return super().process(data, filename, media_type, config)


class RaisingTransformer(HalvingTransformer):
    def process(self, data, filename, media_type, config):
        if filename.startswith("boom"):
            raise RuntimeError("decompression bomb")
        return super().process(data, filename, media_type, config)


def _finish(service):
    assert service.wait(timeout=30)
    return service.get_status()


class TestCreateTask:
    def test_empty_list_does_not_touch_status(self, inventory):
        service = BatchProcessingService(inventory, HalvingTransformer())
        before = processor_manager.batch_status_processor.get_or_create()

        with pytest.raises(ValidationError):
            service.create_task([])
        with pytest.raises(ValidationError):
            service.create_task(None)

        assert processor_manager.batch_status_processor.get() == before

    def test_requires_capability(self, inventory):
        service = BatchProcessingService(inventory, HalvingTransformer(enabled=False))
        with pytest.raises(ValidationError) as exc_info:
            service.create_task(["a.png"])
        assert exc_info.value.message == "没有启用任何处理功能"

    def test_rejects_while_running(self, inventory):
        inventory.add("a.png", b"x" * 100)
        transformer = BlockingTransformer()
        service = BatchProcessingService(inventory, transformer)

        service.create_task(["a.png"])
        assert transformer.started.wait(10)
        try:
            with pytest.raises(StateConflictError):
                service.create_task(["a.png"])
        finally:
            transformer.release.set()
        assert _finish(service).phase == DBConstants.BatchPhase.COMPLETED

    def test_orphaned_active_task_is_replaced(self, inventory):
        status = processor_manager.batch_status_processor.get_or_create()
        status.task_id = "20200101_000000"
        status.phase = DBConstants.BatchPhase.PROCESSING
        processor_manager.batch_status_processor.update(status)

        inventory.add("a.png", b"x" * 100)
        service = BatchProcessingService(inventory, HalvingTransformer())
        created = service.create_task(["a.png"])

        assert created.task_id != "20200101_000000"
        assert created.phase == DBConstants.BatchPhase.PENDING
        assert _finish(service).phase == DBConstants.BatchPhase.COMPLETED


class TestPipeline:
    def test_outcomes(self, inventory):
        inventory.backends = [StorageBackend("local", True), StorageBackend("s3", False)]
        inventory.add("a.png", b"a" * 100, group="2024")
        inventory.add("notes.txt", b"n" * 100, media_type="text/plain")
        inventory.add("remote.png", b"r" * 100, backend="s3")
        inventory.add("skip.png", b"s" * 100)
        inventory.add("locked.png", b"l" * 100)
        inventory.add("nourl.png", b"u" * 100, access_url="")
        inventory.undeletable.add("locked.png")

        service = BatchProcessingService(inventory, HalvingTransformer())
        ids = ["a.png", "notes.txt", "remote.png", "skip.png", "locked.png", "nourl.png", "missing.png"]
        service.create_task(ids)
        status = _finish(service)

        assert status.phase == DBConstants.BatchPhase.COMPLETED
        assert status.total == 7
        assert status.processed == 7
        assert status.succeeded == 1
        assert status.failed == 2
        assert status.skipped == 4
        assert status.saved_bytes == 50
        assert status.end_time is not None

        skipped = {i.asset_id: i.reason for i in status.skipped_items}
        assert skipped == {
            "notes.txt": "文件格式不在允许列表中",
            "remote.png": "远程存储未启用",
            "skip.png": "处理后文件未变小",
            "missing.png": "文件不存在或已删除",
        }
        failed = {i.asset_id: i.error for i in status.failed_items}
        assert failed["locked.png"].startswith("删除原文件失败")
        assert failed["nourl.png"] == "附件没有可访问地址"

        assert "a.png" in inventory.deleted
        uploaded = {u.display_name: u.group for u in inventory.uploaded}
        assert uploaded == {"a.webp": "2024", "locked.webp": ""}

        logs = processor_manager.processing_log_processor.get_by_task(status.task_id)
        assert len(logs) == 7
        partial = [log for log in logs if log.status == DBConstants.ProcessingStatus.PARTIAL]
        assert [log.asset_id for log in partial] == ["locked.png"]

    def test_keep_original(self, inventory):
        settingService.get_config().batch_processing.keep_original_file = True
        inventory.add("a.png", b"a" * 100)
        service = BatchProcessingService(inventory, HalvingTransformer())

        service.create_task(["a.png"])
        status = _finish(service)

        assert status.succeeded == 1
        assert status.kept_original_count == 1
        assert status.keep_original is True
        assert inventory.deleted == []
        assert len(inventory.uploaded) == 1

    def test_min_size_threshold(self, inventory):
        settingService.get_config().batch_processing.min_size_kb = 1
        inventory.add("small.png", b"a" * 100)
        service = BatchProcessingService(inventory, HalvingTransformer())

        service.create_task(["small.png"])
        status = _finish(service)
        assert status.skipped == 1
        assert "KB" in status.skipped_items[0].reason

    def test_transformer_exception_is_counted_as_failed(self, inventory):
        inventory.add("boom.png", b"b" * 100)
        inventory.add("ok.png", b"o" * 100)
        service = BatchProcessingService(inventory, RaisingTransformer())

        service.create_task(["boom.png", "ok.png"])
        status = _finish(service)

        assert status.phase == DBConstants.BatchPhase.COMPLETED
        assert status.processed == 2
        assert status.succeeded == 1
        assert status.failed == 1
        assert status.failed_items[0].asset_id == "boom.png"
        assert status.failed_items[0].error == "处理失败: decompression bomb"

        logs = {log.asset_id: log.status for log in processor_manager.processing_log_processor.get_by_task(status.task_id)}
        assert logs == {"boom.png": DBConstants.ProcessingStatus.FAILED, "ok.png": DBConstants.ProcessingStatus.SUCCEEDED}
        assert "boom.png" not in inventory.deleted


class TestCancellation:
    def test_cancel_stops_unstarted_items(self, inventory):
        settingService.get_config().batch_processing.processing_concurrency = 1
        for name in ("a.png", "b.png", "c.png", "d.png"):
            inventory.add(name, b"x" * 100)
        transformer = BlockingTransformer()
        service = BatchProcessingService(inventory, transformer)

        service.create_task(["a.png", "b.png", "c.png", "d.png"])
        assert transformer.started.wait(10)
        cancelling = service.cancel_task()
        assert cancelling.phase == DBConstants.BatchPhase.CANCELLING
        transformer.release.set()

        status = _finish(service)
        assert status.phase == DBConstants.BatchPhase.CANCELLED
        assert status.processed <= status.total
        # 已开始的条目照常完成
        assert status.processed == 1
        assert status.succeeded == 1
        assert transformer.processed == ["a.png"]

    def test_cancel_without_task(self, inventory):
        service = BatchProcessingService(inventory, HalvingTransformer())
        with pytest.raises(ValidationError):
            service.cancel_task()

    def test_cancel_finished_task(self, inventory):
        inventory.add("a.png", b"x" * 100)
        service = BatchProcessingService(inventory, HalvingTransformer())
        service.create_task(["a.png"])
        _finish(service)

        with pytest.raises(StateConflictError):
            service.cancel_task()


class TestSettingsView:
    def test_view(self, inventory):
        service = BatchProcessingService(inventory, HalvingTransformer())
        view = service.get_settings_view()
        assert view["capability_enabled"] is True
        assert view["keep_original_file"] is False
        assert view["config"]["target_format"] == "webp"
