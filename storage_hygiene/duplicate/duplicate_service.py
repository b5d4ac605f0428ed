import hashlib
from concurrent.futures import Future, ThreadPoolExecutor, wait
from datetime import datetime
from typing import Dict, List, Optional, Set

from storage_hygiene.common.base_scan_service import BaseScanService
from storage_hygiene.common.exceptions import ValidationError
from storage_hygiene.common.log_utils import LogUtils
from storage_hygiene.common.progress_context import TaskProgress
from storage_hygiene.common.thread_pool import ThreadPoolManager
from storage_hygiene.common.utils import Utils
from storage_hygiene.db.db_constants import DBConstants
from storage_hygiene.db.processor_manager import processor_manager
from storage_hygiene.duplicate.md5_checker import Md5Checker
from storage_hygiene.model.asset_record import AssetFilter, AssetRecord
from storage_hygiene.model.cleanup_result import CleanupResult
from storage_hygiene.model.db.cleanup_log_db_model import CleanupLogDBModel
from storage_hygiene.model.db.duplicate_group_db_model import DuplicateGroupDBModel
from storage_hygiene.model.db.scan_status_db_model import ScanStatusDBModel
from storage_hygiene.model.duplicate_group_item import DuplicateGroupItem, DuplicateMemberItem
from storage_hygiene.model.pagination_result import PaginationResult
from storage_hygiene.setting.setting_models import ExcludeSettings, ScanSettings
from storage_hygiene.setting.setting_service import settingService
from storage_hygiene.storage.asset_downloader import AssetDownloader
from storage_hygiene.storage.base_asset_inventory import AssetInventory


class DuplicateService(BaseScanService):
    """
    用途说明：重复文件检测服务。按内容摘要（默认 MD5）对附件分组：
        1. 把现有重复组标记为待删除（扫描完成后再异步删除，读取方不会看到空窗）
        2. 确定可扫描的存储后端：本地后端始终参与，远程后端需要开启配置
        3. 以可配置的并发数流式计算每个附件的摘要，单个附件失败或超时只跳过该附件
        4. 为成员数 >= 2 的摘要补充引用次数、生成重复组并选出建议保留文件
        5. 回写扫描状态
    """
    SCAN_TYPE = DBConstants.ScanType.DUPLICATE

    # 每处理多少个附件输出一次进度日志
    PROGRESS_LOG_INTERVAL: int = 50

    def __init__(self, inventory: AssetInventory) -> None:
        super().__init__()
        self.inventory: AssetInventory = inventory

    def _live_counters(self, progress: TaskProgress) -> Dict[str, int]:
        snapshot = progress.snapshot()
        return {"scanned_count": snapshot.processed, "total_count": snapshot.total, "failed_count": snapshot.failed}

    # ------------------------------------------------------------------ 扫描

    def _run_pass(self, token: str, progress: TaskProgress) -> None:
        scan_settings: ScanSettings = settingService.get_config().scan
        # 算法名无效时直接让整轮失败，而不是每个附件各失败一次
        hashlib.new(scan_settings.hash_algorithm)
        pass_stamp: str = datetime.now().strftime("%Y%m%d%H%M%S%f")

        marked: int = processor_manager.duplicate_group_processor.mark_all_pending_delete()
        LogUtils.info(f"重复检测开始，已标记旧重复组 {marked} 个")

        allowed_backends: List[str] = [
            b.name for b in self.inventory.list_backends()
            if b.local or scan_settings.remote_storage_for_duplicate_scan
        ]
        if not allowed_backends:
            LogUtils.info("没有可扫描的存储后端，跳过扫描")
            self._finish(token, 0, [], 0)
            return
        LogUtils.info(f"可扫描的存储后端: {allowed_backends}, 并发数: {scan_settings.duplicate_scan_concurrency}, "
                      f"远程存储: {scan_settings.remote_storage_for_duplicate_scan}")

        exclude: ExcludeSettings = settingService.get_config().exclude
        assets: List[AssetRecord] = list(self.inventory.list_all(AssetFilter(
            backends=allowed_backends,
            exclude_groups=list(exclude.exclude_groups),
            exclude_backends=list(exclude.exclude_backends)
        )))
        progress.set_total(len(assets))
        if not assets:
            LogUtils.info("没有附件，完成扫描")
            self._finish(token, 0, [], 0)
            return
        LogUtils.info(f"找到 {len(assets)} 个附件，开始计算摘要...")

        checker: Md5Checker = Md5Checker()
        self._hash_assets(assets, checker, progress, scan_settings)
        snapshot = progress.snapshot()
        LogUtils.info(f"摘要计算完成，已处理: {snapshot.processed}/{snapshot.total}，失败: {snapshot.failed}")

        reference_counts: Dict[str, int] = processor_manager.reference_record_processor.get_reference_count_map()
        groups: List[DuplicateGroupDBModel] = checker.get_results(reference_counts, pass_stamp, Utils.now_str())

        if not self.is_current(token):
            LogUtils.info("重复检测已被新一轮扫描接管，丢弃本轮结果")
            return
        processor_manager.duplicate_group_processor.batch_save_groups(groups)
        self._finish(token, len(assets), groups, snapshot.failed)

    def _hash_assets(self, assets: List[AssetRecord], checker: Md5Checker, progress: TaskProgress,
                     scan_settings: ScanSettings) -> None:
        """
        用途说明：以有界并发计算摘要，全部附件结束（成功、失败或超时）后才返回。
        """
        concurrency: int = max(1, scan_settings.duplicate_scan_concurrency)
        with ThreadPoolExecutor(max_workers=concurrency, thread_name_prefix="HashWorker") as executor:
            futures: List[Future] = [
                executor.submit(self._hash_one, asset, position, checker, progress, scan_settings)
                for position, asset in enumerate(assets)
            ]
            wait(futures)

    def _hash_one(self, asset: AssetRecord, position: int, checker: Md5Checker, progress: TaskProgress,
                  scan_settings: ScanSettings) -> None:
        try:
            digest: str = AssetDownloader.digest(
                self.inventory, asset, scan_settings.hash_algorithm, scan_settings.hash_timeout_seconds
            )
        except Exception as e:
            LogUtils.error(f"计算附件摘要失败，已跳过: {asset.display_name} ({asset.id}), 错误: {e}")
            progress.record_failed(asset.id, asset.display_name, str(e))
            return

        checker.add_file(digest, asset, position)
        processed: int = progress.advance()
        if processed % self.PROGRESS_LOG_INTERVAL == 0:
            LogUtils.debug(f"摘要计算进度: {processed}/{progress.snapshot().total}")

    def _finish(self, token: str, total: int, groups: List[DuplicateGroupDBModel], failed: int) -> None:
        duplicate_files: int = sum(g.file_count - 1 for g in groups)
        savable: int = sum(g.savable_bytes for g in groups)
        completed: bool = self._complete_pass(token, self.SCAN_TYPE, {
            "total_count": total,
            "scanned_count": total - failed,
            "failed_count": failed,
            "duplicate_group_count": len(groups),
            "duplicate_file_count": duplicate_files,
            "savable_size": savable,
        })
        LogUtils.info(f"重复检测完成 - 总附件: {total}, 重复组: {len(groups)}, 重复文件: {duplicate_files}, "
                      f"可节省: {Utils.format_size(savable)}")
        if completed:
            ThreadPoolManager.submit(self._delete_pending_groups)

    @staticmethod
    def _delete_pending_groups() -> None:
        try:
            deleted: int = processor_manager.duplicate_group_processor.delete_pending()
            LogUtils.info(f"旧重复组清理完成，共删除 {deleted} 个")
        except Exception as e:
            LogUtils.error(f"删除旧重复组失败: {e}")

    # ------------------------------------------------------------------ 查询

    def list_groups(self, page: int = 1, limit: int = 20) -> PaginationResult[DuplicateGroupItem]:
        """
        用途说明：分页获取重复组（按可节省空间倒序），成员补充附件当前信息与最新引用次数。
        入参说明：page / limit (int) - 分页参数
        返回值说明：PaginationResult[DuplicateGroupItem]
        """
        result: PaginationResult[DuplicateGroupDBModel] = \
            processor_manager.duplicate_group_processor.get_groups_paged(page, limit)

        reference_status: ScanStatusDBModel = processor_manager.scan_status_processor.get_or_create(
            DBConstants.ScanType.REFERENCE
        )
        reference_counts: Optional[Dict[str, int]] = None
        if reference_status.last_scan_time:
            reference_counts = processor_manager.reference_record_processor.get_reference_count_map()

        items: List[DuplicateGroupItem] = []
        for group in result.list:
            item: DuplicateGroupItem = DuplicateGroupItem.from_group(group)
            for member in group.members:
                asset: Optional[AssetRecord] = self.inventory.fetch(member.asset_id)
                item.members.append(DuplicateMemberItem(
                    asset_id=member.asset_id,
                    display_name=asset.display_name if asset else member.display_name,
                    size=member.size,
                    upload_time=member.upload_time,
                    access_url=asset.access_url if asset else None,
                    media_type=asset.media_type if asset else "",
                    exists=asset is not None,
                    reference_count=reference_counts.get(member.asset_id, 0) if reference_counts is not None else -1,
                    recommended_keep=member.asset_id == group.recommended_keep_id
                ))
            items.append(item)

        return PaginationResult(
            total=result.total, list=items, page=result.page, limit=result.limit,
            sort_by=result.sort_by, order=result.order
        )

    # ------------------------------------------------------------------ 清理

    def delete_duplicates(self, content_hash: Optional[str], asset_ids: Optional[List[str]],
                          operator: str = "system") -> CleanupResult:
        """
        用途说明：删除重复组中的指定文件，组内至少保留一个文件。
        入参说明：
            content_hash (Optional[str]): 重复组摘要
            asset_ids (Optional[List[str]]): 待删除的附件 ID
            operator (str): 操作人
        返回值说明：CleanupResult
        """
        if not asset_ids:
            raise ValidationError("附件列表不能为空")
        group: Optional[DuplicateGroupDBModel] = \
            processor_manager.duplicate_group_processor.get_by_hash(content_hash) if content_hash else None
        if group is None:
            raise ValidationError("重复组不存在")
        member_ids: Set[str] = set(group.member_asset_ids)
        if member_ids.issubset(set(asset_ids)):
            raise ValidationError("每个重复组至少需要保留一个文件")

        LogUtils.info(f"删除重复文件，重复组: {content_hash}, 附件数: {len(asset_ids)}")
        result: CleanupResult = CleanupResult()
        deleted_ids: List[str] = []
        for asset_id in asset_ids:
            if asset_id not in member_ids:
                result.errors.append(f"{asset_id}: 不属于该重复组")
                continue
            asset: Optional[AssetRecord] = self.inventory.fetch(asset_id)
            if asset is None:
                # 文件已不存在，同样从组中移除
                deleted_ids.append(asset_id)
                result.errors.append(f"{asset_id}: 文件不存在或已删除")
                continue
            try:
                self.inventory.delete(asset_id)
            except Exception as e:
                LogUtils.error(f"删除附件 {asset_id} 失败: {e}")
                result.errors.append(f"{asset_id}: {e}")
                self._write_cleanup_log(asset, operator, str(e))
                continue
            self._write_cleanup_log(asset, operator)
            deleted_ids.append(asset_id)
            result.deleted_count += 1
            result.freed_size += asset.size

        result.failed_count = len(asset_ids) - result.deleted_count
        if deleted_ids:
            group.members = [m for m in group.members if m.asset_id not in deleted_ids]
            dissolved: bool = len(group.members) < 2
            if not dissolved:
                Md5Checker.refresh_group_stats(group)
            processor_manager.duplicate_group_processor.remove_members(group, deleted_ids)
            processor_manager.reference_record_processor.delete_by_asset_ids(deleted_ids)
            self._update_status(self.SCAN_TYPE, lambda s: self._adjust_after_delete(s, result, dissolved))
        return result

    @staticmethod
    def _adjust_after_delete(status: ScanStatusDBModel, result: CleanupResult, dissolved: bool) -> None:
        counters: Dict[str, int] = status.counters
        deltas: Dict[str, int] = {
            "duplicate_file_count": result.deleted_count,
            "savable_size": result.freed_size,
            "duplicate_group_count": 1 if dissolved else 0,
        }
        for key, delta in deltas.items():
            if key in counters:
                counters[key] = max(0, counters[key] - delta)

    @staticmethod
    def _write_cleanup_log(asset: AssetRecord, operator: str, error_message: Optional[str] = None) -> None:
        processor_manager.cleanup_log_processor.insert(CleanupLogDBModel(
            asset_id=asset.id,
            display_name=asset.display_name,
            size=asset.size,
            reason=DBConstants.CleanupReason.DUPLICATE,
            operator=operator,
            deleted_at=Utils.now_str(),
            error_message=error_message
        ))

    def clear_all(self) -> None:
        processor_manager.duplicate_group_processor.clear_all_table()
        self.reset_status()
        LogUtils.info("重复检测结果已清空")
