import threading
import traceback
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import asdict
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from storage_hygiene.common.exceptions import ConcurrencyConflictError, StateConflictError, StorageHygieneError, \
    ValidationError
from storage_hygiene.common.log_utils import LogUtils
from storage_hygiene.common.progress_context import TaskProgress
from storage_hygiene.common.retry_utils import retry_on_conflict
from storage_hygiene.common.thread_pool import ThreadPoolManager
from storage_hygiene.common.utils import Utils
from storage_hygiene.db.db_constants import DBConstants
from storage_hygiene.db.processor_manager import processor_manager
from storage_hygiene.model.asset_record import AssetRecord
from storage_hygiene.model.db.batch_status_db_model import BatchStatusDBModel
from storage_hygiene.model.db.processing_log_db_model import ProcessingLogDBModel
from storage_hygiene.model.pagination_result import PaginationResult
from storage_hygiene.setting.setting_models import BatchProcessingSettings
from storage_hygiene.setting.setting_service import settingService
from storage_hygiene.storage.asset_downloader import AssetDownloader
from storage_hygiene.storage.base_asset_inventory import AssetInventory
from storage_hygiene.transform.base_transformer import BaseTransformer, TransformResult, TransformStatus


class BatchProcessingService:
    """
    用途说明：批量处理服务（图片重新压缩、格式转换等），同一时间只允许一个任务处于活动状态。
    任务阶段：PENDING -> PROCESSING -> COMPLETED / CANCELLED / ERROR，
    处理中可请求取消（CANCELLING），已开始的条目会继续完成，未开始的条目不再处理。
    """

    # 任务阶段中视为"仍在运行"的阶段，get_status 时合并内存进度
    LIVE_PHASES: tuple = DBConstants.BatchPhase.ACTIVE + (DBConstants.BatchPhase.CANCELLING,)

    def __init__(self, inventory: AssetInventory, transformer: BaseTransformer) -> None:
        self.inventory: AssetInventory = inventory
        self.transformer: BaseTransformer = transformer
        self._lock: threading.Lock = threading.Lock()
        self._task_id: Optional[str] = None
        self._progress: Optional[TaskProgress] = None
        self._future: Optional[Future] = None

    # ------------------------------------------------------------------ 任务控制

    def create_task(self, asset_ids: Optional[List[str]]) -> BatchStatusDBModel:
        """
        用途说明：创建批量处理任务，校验通过后立即返回，处理在后台执行。
        入参说明：asset_ids (Optional[List[str]]) - 待处理附件 ID
        返回值说明：BatchStatusDBModel - PENDING 状态
        异常说明：
            ValidationError: 列表为空或没有启用任何处理功能
            StateConflictError: 已有任务正在执行
        """
        if not asset_ids:
            raise ValidationError("附件列表不能为空")
        config: BatchProcessingSettings = settingService.get_config().batch_processing
        if not self.transformer.is_enabled(config):
            raise ValidationError("没有启用任何处理功能")

        with self._lock:
            status: BatchStatusDBModel = processor_manager.batch_status_processor.get_or_create()
            if status.phase in DBConstants.BatchPhase.ACTIVE:
                if self._progress is not None and not self._progress.is_pristine():
                    raise StateConflictError("已有任务正在执行中")
                LogUtils.info(f"批量任务 {status.task_id} 处于 {status.phase} 但没有进行中的处理，视为服务重启遗留，允许创建新任务")

            task_id: str = datetime.now().strftime("%Y%m%d_%H%M%S")
            ids: List[str] = list(asset_ids)
            status.task_id = task_id
            status.phase = DBConstants.BatchPhase.PENDING
            status.asset_ids = ids
            status.keep_original = bool(config.keep_original_file)
            status.apply_snapshot(TaskProgress(total=len(ids)).snapshot())
            status.start_time = Utils.now_str()
            status.end_time = None
            status.error_message = None
            try:
                status = processor_manager.batch_status_processor.update(status)
            except ConcurrencyConflictError:
                raise StateConflictError("任务状态已被其他请求修改，请稍后重试")

            progress: TaskProgress = TaskProgress(total=len(ids))
            self._task_id = task_id
            self._progress = progress
            try:
                self._future = ThreadPoolManager.submit(self._run_task, task_id, ids, progress)
            except RuntimeError as e:
                LogUtils.error(f"提交批量任务失败: {e}")
                self._progress = None
                self._update_status(lambda s: self._apply_error(s, f"提交后台任务失败: {e}"))
                raise StorageHygieneError("后台任务提交失败")

        LogUtils.info(f"批量任务 {task_id} 已创建，附件数: {len(ids)}，保留原文件: {status.keep_original}")
        return status

    def cancel_task(self) -> BatchStatusDBModel:
        """
        用途说明：请求取消当前任务（协作式，已开始的条目会完成）。
        返回值说明：BatchStatusDBModel - 更新后的状态
        """
        status: Optional[BatchStatusDBModel] = processor_manager.batch_status_processor.get()
        if status is None or not status.task_id:
            raise ValidationError("没有正在执行的任务")
        if status.phase not in DBConstants.BatchPhase.ACTIVE:
            raise StateConflictError("任务不在可取消状态")

        with self._lock:
            progress: Optional[TaskProgress] = self._progress if self._task_id == status.task_id else None
        if progress is None:
            # 没有后台线程会收尾，直接结束
            LogUtils.info(f"批量任务 {status.task_id} 没有进行中的处理，直接标记为已取消")
            updated = self._update_status(lambda s: self._apply_phase(s, DBConstants.BatchPhase.CANCELLED, True))
        else:
            progress.request_cancel()
            updated = self._update_status(lambda s: self._apply_phase(s, DBConstants.BatchPhase.CANCELLING))
            LogUtils.info(f"批量任务 {status.task_id} 已请求取消")
        return updated or processor_manager.batch_status_processor.get_or_create()

    def get_status(self) -> BatchStatusDBModel:
        """
        用途说明：获取任务状态，任务运行中时合并内存中的实时计数。
        """
        status: BatchStatusDBModel = processor_manager.batch_status_processor.get_or_create()
        with self._lock:
            progress: Optional[TaskProgress] = self._progress if self._task_id == status.task_id else None
        if status.phase in self.LIVE_PHASES and progress is not None:
            status.apply_snapshot(progress.snapshot())
        return status

    def wait(self, timeout: Optional[float] = None) -> bool:
        with self._lock:
            future: Optional[Future] = self._future
        if future is None:
            return True
        done, _ = wait([future], timeout=timeout)
        return bool(done)

    def get_settings_view(self) -> Dict[str, Any]:
        """
        用途说明：批量处理相关配置概览，供前端决定是否展示处理入口。
        """
        config: BatchProcessingSettings = settingService.get_config().batch_processing
        return {
            "keep_original_file": config.keep_original_file,
            "remote_storage_for_batch_processing": config.remote_storage_for_batch_processing,
            "capability_enabled": self.transformer.is_enabled(config),
            "config": asdict(config),
        }

    @staticmethod
    def list_logs(page: int = 1, limit: int = 20, task_id: Optional[str] = None) -> PaginationResult[ProcessingLogDBModel]:
        return processor_manager.processing_log_processor.get_paged(page, limit, task_id)

    # ------------------------------------------------------------------ 后台执行

    def _run_task(self, task_id: str, asset_ids: List[str], progress: TaskProgress) -> None:
        try:
            self._update_status(lambda s: self._start_processing(s, task_id))
            config: BatchProcessingSettings = settingService.get_config().batch_processing
            concurrency: int = max(1, config.processing_concurrency)
            LogUtils.info(f"批量任务 {task_id} 开始处理，并发数: {concurrency}")

            with ThreadPoolExecutor(max_workers=concurrency, thread_name_prefix="BatchWorker") as executor:
                futures: List[Future] = [
                    executor.submit(self._process_item, task_id, asset_id, progress, config)
                    for asset_id in asset_ids
                ]
                wait(futures)

            cancelled: bool = progress.is_cancelled()
            final_phase: str = DBConstants.BatchPhase.CANCELLED if cancelled else DBConstants.BatchPhase.COMPLETED
            snapshot = progress.snapshot()

            def finish(status: BatchStatusDBModel) -> None:
                status.apply_snapshot(snapshot)
                self._apply_phase(status, final_phase, True)

            if self._is_current(task_id):
                self._update_status(finish)
            LogUtils.info(f"批量任务 {task_id} 结束（{final_phase}）- 已处理: {snapshot.processed}/{snapshot.total}, "
                          f"成功: {snapshot.succeeded}, 失败: {snapshot.failed}, 跳过: {snapshot.skipped}, "
                          f"节省: {Utils.format_size(snapshot.saved_bytes)}")
        except Exception as e:
            LogUtils.error(f"批量任务 {task_id} 执行异常: {e}\n{traceback.format_exc()}")
            if self._is_current(task_id):
                snapshot = progress.snapshot()

                def fail(status: BatchStatusDBModel) -> None:
                    status.apply_snapshot(snapshot)
                    self._apply_error(status, str(e))

                self._update_status(fail)
        finally:
            with self._lock:
                if self._task_id == task_id:
                    self._progress = None

    def _is_current(self, task_id: str) -> bool:
        with self._lock:
            return self._task_id == task_id

    def _process_item(self, task_id: str, asset_id: str, progress: TaskProgress,
                      config: BatchProcessingSettings) -> None:
        """
        用途说明：处理单个附件。开始前检查取消标志，已取消时既不处理也不计数；
        已开始的条目无论出现什么异常都会记录为失败。
        """
        if progress.is_cancelled():
            return

        try:
            self._process_asset(task_id, asset_id, progress, config)
        except Exception as e:
            LogUtils.error(f"处理附件异常: {asset_id}, 错误: {e}\n{traceback.format_exc()}")
            self._fail(task_id, progress, asset_id, f"处理失败: {e}")

    def _process_asset(self, task_id: str, asset_id: str, progress: TaskProgress,
                       config: BatchProcessingSettings) -> None:
        asset: Optional[AssetRecord] = self.inventory.fetch(asset_id)
        if asset is None:
            self._skip(task_id, progress, asset_id, asset_id, "文件不存在或已删除")
            return

        reason: Optional[str] = self._check_eligible(asset, config)
        if reason:
            self._skip(task_id, progress, asset, asset.display_name, reason)
            return

        if not asset.access_url:
            self._fail(task_id, progress, asset, "附件没有可访问地址")
            return

        try:
            data: bytes = AssetDownloader.download(self.inventory, asset, config.download_timeout_seconds)
        except Exception as e:
            LogUtils.error(f"下载附件失败: {asset.display_name} ({asset.id}), 错误: {e}")
            self._fail(task_id, progress, asset, f"下载失败: {e}")
            return

        result: TransformResult = self.transformer.process(data, asset.display_name, asset.media_type, config)
        if result.status == TransformStatus.SKIPPED:
            self._skip(task_id, progress, asset, asset.display_name, result.message)
            return
        if result.status == TransformStatus.FAILED:
            self._fail(task_id, progress, asset, result.message, original_size=len(data))
            return

        try:
            uploaded: AssetRecord = self.inventory.upload(
                asset.backend, asset.group, result.result_filename, result.result_bytes, result.result_media_type
            )
        except Exception as e:
            LogUtils.error(f"上传处理结果失败: {asset.display_name}, 错误: {e}")
            self._fail(task_id, progress, asset, f"上传失败: {e}", original_size=len(data))
            return

        original_size: int = len(data)
        result_size: int = len(result.result_bytes)
        saved: int = max(0, original_size - result_size)
        if config.keep_original_file:
            progress.record_succeeded(saved, kept_original=True)
            self._write_log(task_id, asset, DBConstants.ProcessingStatus.SUCCEEDED, "已保留原文件",
                            uploaded.display_name, original_size, result_size)
            return

        try:
            self.inventory.delete(asset.id)
        except Exception as e:
            # 新文件已上传，原文件仍然存在
            LogUtils.error(f"删除原文件失败: {asset.display_name}, 错误: {e}")
            message: str = f"删除原文件失败: {e}"
            progress.record_failed(asset.id, asset.display_name, message)
            self._write_log(task_id, asset, DBConstants.ProcessingStatus.PARTIAL, message,
                            uploaded.display_name, original_size, result_size)
            return

        progress.record_succeeded(saved)
        self._write_log(task_id, asset, DBConstants.ProcessingStatus.SUCCEEDED, None,
                        uploaded.display_name, original_size, result_size)
        LogUtils.debug(f"处理完成: {asset.display_name} -> {uploaded.display_name}, "
                       f"{Utils.format_size(original_size)} -> {Utils.format_size(result_size)}")

    def _check_eligible(self, asset: AssetRecord, config: BatchProcessingSettings) -> Optional[str]:
        """
        用途说明：处理前的资格检查。
        返回值说明：Optional[str] - 不符合条件时返回跳过原因
        """
        if not config.remote_storage_for_batch_processing and not self.inventory.is_local_backend(asset.backend):
            return "远程存储未启用"
        allowed: List[str] = [t.lower() for t in config.allowed_media_types]
        if (asset.media_type or "").lower() not in allowed:
            return "文件格式不在允许列表中"
        if not self.transformer.is_supported(asset.media_type):
            return f"不支持的文件类型: {asset.media_type}"
        if config.min_size_kb > 0 and asset.size < config.min_size_kb * 1024:
            return f"文件小于 {config.min_size_kb} KB"
        return None

    def _skip(self, task_id: str, progress: TaskProgress, asset: Any, display_name: str, reason: str) -> None:
        asset_id: str = asset.id if isinstance(asset, AssetRecord) else asset
        progress.record_skipped(asset_id, display_name, reason)
        self._write_log(task_id, asset, DBConstants.ProcessingStatus.SKIPPED, reason)

    def _fail(self, task_id: str, progress: TaskProgress, asset: Any, message: str, original_size: int = 0) -> None:
        if isinstance(asset, AssetRecord):
            progress.record_failed(asset.id, asset.display_name, message)
            self._write_log(task_id, asset, DBConstants.ProcessingStatus.FAILED, message,
                            original_size=original_size or asset.size)
        else:
            progress.record_failed(asset, asset, message)
            self._write_log(task_id, asset, DBConstants.ProcessingStatus.FAILED, message, original_size=original_size)

    @staticmethod
    def _write_log(task_id: str, asset: Any, status: str, message: Optional[str], result_filename: Optional[str] = None,
                   original_size: Optional[int] = None, result_size: int = 0) -> None:
        is_record: bool = isinstance(asset, AssetRecord)
        try:
            processor_manager.processing_log_processor.insert(ProcessingLogDBModel(
                task_id=task_id,
                asset_id=asset.id if is_record else asset,
                original_filename=asset.display_name if is_record else "",
                result_filename=result_filename,
                original_size=original_size if original_size is not None else (asset.size if is_record else 0),
                result_size=result_size,
                status=status,
                message=message,
                processed_at=Utils.now_str()
            ))
        except Exception as e:
            LogUtils.error(f"写入处理日志失败: {e}")

    # ------------------------------------------------------------------ 状态回写

    @staticmethod
    def _start_processing(status: BatchStatusDBModel, task_id: str) -> None:
        # 已被请求取消时保持 CANCELLING
        if status.task_id == task_id and status.phase == DBConstants.BatchPhase.PENDING:
            status.phase = DBConstants.BatchPhase.PROCESSING

    @staticmethod
    def _apply_phase(status: BatchStatusDBModel, phase: str, finished: bool = False) -> None:
        status.phase = phase
        if finished:
            status.end_time = Utils.now_str()

    @staticmethod
    def _apply_error(status: BatchStatusDBModel, message: str) -> None:
        status.phase = DBConstants.BatchPhase.ERROR
        status.error_message = message
        status.end_time = Utils.now_str()

    @staticmethod
    @retry_on_conflict()
    def _update_status(mutate: Callable[[BatchStatusDBModel], None]) -> BatchStatusDBModel:
        """
        用途说明：读取最新任务状态、应用修改并按版本号写回，冲突时退避重试，耗尽后放弃。
        """
        status: BatchStatusDBModel = processor_manager.batch_status_processor.get_or_create()
        mutate(status)
        return processor_manager.batch_status_processor.update(status)
