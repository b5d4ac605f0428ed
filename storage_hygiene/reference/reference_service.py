from datetime import datetime
from typing import Callable, Dict, List, Optional, Set, Tuple

from storage_hygiene.common.base_scan_service import BaseScanService
from storage_hygiene.common.exceptions import ValidationError
from storage_hygiene.common.log_utils import LogUtils
from storage_hygiene.common.progress_context import TaskProgress
from storage_hygiene.common.utils import Utils
from storage_hygiene.db.db_constants import DBConstants
from storage_hygiene.db.processor_manager import processor_manager
from storage_hygiene.model.asset_record import AssetFilter, AssetRecord
from storage_hygiene.model.cleanup_result import CleanupResult
from storage_hygiene.model.db.broken_link_db_model import BrokenLinkDBModel
from storage_hygiene.model.db.cleanup_log_db_model import CleanupLogDBModel
from storage_hygiene.model.db.reference_record_db_model import ReferenceRecordDBModel
from storage_hygiene.model.db.scan_status_db_model import ScanStatusDBModel
from storage_hygiene.model.db.whitelist_entry_db_model import WhitelistEntryDBModel
from storage_hygiene.model.pagination_result import PaginationResult
from storage_hygiene.model.reference_item import ReferenceItem
from storage_hygiene.model.source_ref import SourceRef
from storage_hygiene.reference.content_collector import ContentCollector
from storage_hygiene.reference.url_index import UrlIndex
from storage_hygiene.reference.whitelist_service import WhitelistService
from storage_hygiene.setting.setting_models import AppConfig
from storage_hygiene.setting.setting_service import settingService
from storage_hygiene.source.content_source_registry import ContentSourceRegistry
from storage_hygiene.storage.base_asset_inventory import AssetInventory


class ReferenceFilter:
    ALL = "all"
    REFERENCED = "referenced"
    UNREFERENCED = "unreferenced"


class ReferenceService(BaseScanService):
    """
    用途说明：引用统计服务。一轮扫描完成以下工作：
        1. 删除上一轮的引用记录与失效链接记录（全量替换，不做增量比较）
        2. 遍历所有启用的内容来源，提取 URL 并建立 URL -> 来源 索引
        3. 枚举附件清单，逐个匹配引用来源，每个附件生成一条引用记录（零引用也生成）
        4. 未被任何附件消费的 URL 经白名单过滤后生成失效链接记录
        5. 分别回写引用扫描状态与失效链接扫描状态
    """
    SCAN_TYPE = DBConstants.ScanType.REFERENCE

    # 列表排序字段
    _SORT_KEYS: Dict[str, Callable[[ReferenceItem], object]] = {
        "reference_count": lambda item: item.reference_count,
        "size": lambda item: item.size,
        "display_name": lambda item: (item.display_name or "").lower(),
    }

    def __init__(self, inventory: AssetInventory, registry: ContentSourceRegistry) -> None:
        super().__init__()
        self.inventory: AssetInventory = inventory
        self.registry: ContentSourceRegistry = registry

    # ------------------------------------------------------------------ 扫描

    def _run_pass(self, token: str, progress: TaskProgress) -> None:
        config: AppConfig = settingService.get_config()
        pass_stamp: str = datetime.now().strftime("%Y%m%d%H%M%S%f")
        scanned_at: str = Utils.now_str()

        LogUtils.info("引用扫描开始，正在清理上一轮结果...")
        self._replace_previous_results()

        # 1. 收集内容中的 URL
        index: UrlIndex = UrlIndex(config.site.external_base_url)
        collector: ContentCollector = ContentCollector(index)
        for source in self.registry.resolve(config.content_scan):
            collector.collect(source)
        LogUtils.info(f"内容收集完成，共扫描 {collector.scanned_count} 条内容，失败 {collector.failed_count} 条，"
                      f"提取 URL {index.checked_count()} 个")

        # 2. 匹配附件
        assets: List[AssetRecord] = list(self.inventory.list_all(self._build_filter(config)))
        progress.set_total(len(assets))
        records: List[ReferenceRecordDBModel] = []
        referenced: int = 0
        unreferenced_size: int = 0
        for asset in assets:
            sources: Set[SourceRef] = index.match(asset.access_url)
            if sources:
                referenced += 1
            else:
                unreferenced_size += asset.size
            records.append(ReferenceRecordDBModel(
                record_key=f"ref-{asset.id}-{pass_stamp}",
                asset_id=asset.id,
                reference_count=len(sources),
                sources=sorted(sources, key=SourceRef.sort_key),
                last_scanned_at=scanned_at
            ))
            processed: int = progress.advance()
            if processed % 500 == 0:
                LogUtils.debug(f"引用匹配进度: {processed}/{len(assets)}")

        # 3. 失效链接
        broken_links: List[BrokenLinkDBModel] = self._build_broken_links(index, pass_stamp, scanned_at)

        if not self.is_current(token):
            LogUtils.info("引用扫描已被新一轮扫描接管，丢弃本轮结果")
            return
        processor_manager.reference_record_processor.batch_insert(records)
        processor_manager.broken_link_processor.batch_insert(broken_links)

        total: int = len(assets)
        self._complete_pass(token, DBConstants.ScanType.REFERENCE, {
            "total_attachments": total,
            "referenced_count": referenced,
            "unreferenced_count": total - referenced,
            "unreferenced_size": unreferenced_size,
        })
        self._complete_pass(token, DBConstants.ScanType.BROKEN_LINK, {
            "scanned_content_count": collector.scanned_count,
            "checked_link_count": index.checked_count(),
            "broken_link_count": len(broken_links),
        })
        LogUtils.info(f"引用扫描完成：附件 {total} 个，已引用 {referenced} 个，"
                      f"未引用 {total - referenced} 个（{Utils.format_size(unreferenced_size)}），失效链接 {len(broken_links)} 个")

    @staticmethod
    def _replace_previous_results() -> None:
        """用途说明：两阶段替换的清理部分：先标记待删除，再物理删除。"""
        processor_manager.reference_record_processor.mark_all_pending_delete()
        processor_manager.broken_link_processor.mark_all_pending_delete()
        deleted_refs: int = processor_manager.reference_record_processor.delete_pending()
        deleted_links: int = processor_manager.broken_link_processor.delete_pending()
        LogUtils.debug(f"已删除上一轮引用记录 {deleted_refs} 条，失效链接 {deleted_links} 条")

    @staticmethod
    def _build_filter(config: AppConfig) -> AssetFilter:
        return AssetFilter(
            exclude_groups=list(config.exclude.exclude_groups),
            exclude_backends=list(config.exclude.exclude_backends)
        )

    @staticmethod
    def _build_broken_links(index: UrlIndex, pass_stamp: str, scanned_at: str) -> List[BrokenLinkDBModel]:
        whitelist: List[WhitelistEntryDBModel] = processor_manager.whitelist_processor.get_all()
        broken_links: List[BrokenLinkDBModel] = []
        whitelisted: int = 0
        for url, sources in index.unresolved():
            if WhitelistService.is_whitelisted(url, whitelist):
                whitelisted += 1
                continue
            broken_links.append(BrokenLinkDBModel(
                record_key=f"broken-link-{pass_stamp}-{len(broken_links)}",
                url=url,
                sources=sorted(sources, key=SourceRef.sort_key),
                source_count=len(sources),
                discovered_at=scanned_at
            ))
        if whitelisted:
            LogUtils.debug(f"白名单过滤失效链接 {whitelisted} 个")
        return broken_links

    def _on_pass_error(self, message: str) -> None:
        super()._on_pass_error(message)
        # 失效链接检测依附于引用扫描，一并标记失败
        broken_status: ScanStatusDBModel = processor_manager.scan_status_processor.get_or_create(
            DBConstants.ScanType.BROKEN_LINK
        )
        if broken_status.phase == DBConstants.ScanPhase.SCANNING:
            self._update_status(DBConstants.ScanType.BROKEN_LINK, lambda s: self._apply_error(s, message))

    # ------------------------------------------------------------------ 查询

    def list_references(self, page: int = 1, limit: int = 20, filter_type: Optional[str] = None,
                        keyword: Optional[str] = None, sort: Optional[str] = None) -> PaginationResult[ReferenceItem]:
        """
        用途说明：分页查询附件引用情况。
        入参说明：
            page / limit (int): 分页参数
            filter_type (Optional[str]): all / referenced / unreferenced
            keyword (Optional[str]): 按显示名过滤（不区分大小写）
            sort (Optional[str]): "字段,方向"，字段为 reference_count / size / display_name，默认按附件 ID
        返回值说明：PaginationResult[ReferenceItem]
        """
        record_map: Dict[str, ReferenceRecordDBModel] = {
            r.asset_id: r for r in processor_manager.reference_record_processor.get_all()
        }
        config: AppConfig = settingService.get_config()
        items: List[ReferenceItem] = [
            ReferenceItem.build(asset, record_map.get(asset.id))
            for asset in self.inventory.list_all(self._build_filter(config))
        ]

        items = [i for i in items if self._match_filter(i, filter_type) and self._match_keyword(i, keyword)]
        sort_field, descending = self._parse_sort(sort)
        items.sort(key=self._SORT_KEYS.get(sort_field, lambda item: item.asset_id), reverse=descending)

        page = max(1, page)
        limit = max(1, limit)
        start: int = (page - 1) * limit
        return PaginationResult(
            total=len(items),
            list=items[start:start + limit],
            page=page,
            limit=limit,
            sort_by=sort_field or "asset_id",
            order="DESC" if descending else "ASC"
        )

    @staticmethod
    def _match_filter(item: ReferenceItem, filter_type: Optional[str]) -> bool:
        if filter_type == ReferenceFilter.REFERENCED:
            return item.reference_count > 0
        if filter_type == ReferenceFilter.UNREFERENCED:
            return item.reference_count == 0
        return True

    @staticmethod
    def _match_keyword(item: ReferenceItem, keyword: Optional[str]) -> bool:
        if not keyword or not keyword.strip():
            return True
        return keyword.strip().lower() in (item.display_name or "").lower()

    @staticmethod
    def _parse_sort(sort: Optional[str]) -> Tuple[str, bool]:
        if not sort:
            return "", False
        parts: List[str] = sort.split(",")
        return parts[0].strip(), len(parts) > 1 and parts[1].strip().lower() == "desc"

    def get_reference(self, asset_id: str) -> ReferenceItem:
        """
        用途说明：获取单个附件的引用详情。
        异常说明：附件不存在时抛出 ValidationError
        """
        asset: Optional[AssetRecord] = self.inventory.fetch(asset_id)
        if asset is None:
            raise ValidationError("文件不存在或已删除")
        return ReferenceItem.build(asset, processor_manager.reference_record_processor.get_by_asset_id(asset_id))

    # ------------------------------------------------------------------ 清理

    def delete_unreferenced(self, asset_ids: Optional[List[str]], operator: str = "system") -> CleanupResult:
        """
        用途说明：删除未引用附件，每个附件写一条清理日志，单个失败不影响其它附件。
        入参说明：
            asset_ids (Optional[List[str]]): 待删除附件 ID
            operator (str): 操作人
        返回值说明：CleanupResult
        """
        if not asset_ids:
            raise ValidationError("附件列表不能为空")
        LogUtils.info(f"删除未引用文件，附件数: {len(asset_ids)}")

        result: CleanupResult = CleanupResult()
        deleted_ids: List[str] = []
        for asset_id in asset_ids:
            asset: Optional[AssetRecord] = self.inventory.fetch(asset_id)
            if asset is None:
                result.errors.append(f"{asset_id}: 文件不存在或已删除")
                continue
            try:
                self.inventory.delete(asset_id)
            except Exception as e:
                LogUtils.error(f"删除附件 {asset_id} 失败: {e}")
                result.errors.append(f"{asset_id}: {e}")
                self._write_cleanup_log(asset, DBConstants.CleanupReason.UNREFERENCED, operator, str(e))
                continue
            self._write_cleanup_log(asset, DBConstants.CleanupReason.UNREFERENCED, operator)
            deleted_ids.append(asset_id)
            result.deleted_count += 1
            result.freed_size += asset.size
            LogUtils.info(f"已删除未引用文件: {asset.display_name}")

        result.failed_count = len(asset_ids) - result.deleted_count
        processor_manager.reference_record_processor.delete_by_asset_ids(deleted_ids)
        if result.deleted_count:
            self._update_status(self.SCAN_TYPE, lambda s: self._adjust_after_delete(s, result))
        return result

    @staticmethod
    def _adjust_after_delete(status: ScanStatusDBModel, result: CleanupResult) -> None:
        counters: Dict[str, int] = status.counters
        for key, delta in (("unreferenced_count", result.deleted_count),
                           ("unreferenced_size", result.freed_size),
                           ("total_attachments", result.deleted_count)):
            if key in counters:
                counters[key] = max(0, counters[key] - delta)

    @staticmethod
    def _write_cleanup_log(asset: AssetRecord, reason: str, operator: str,
                           error_message: Optional[str] = None) -> None:
        processor_manager.cleanup_log_processor.insert(CleanupLogDBModel(
            asset_id=asset.id,
            display_name=asset.display_name,
            size=asset.size,
            reason=reason,
            operator=operator,
            deleted_at=Utils.now_str(),
            error_message=error_message
        ))

    def clear_all(self) -> None:
        """用途说明：清空引用记录并把引用扫描状态重置为 IDLE。"""
        processor_manager.reference_record_processor.clear_all()
        self.reset_status()
        LogUtils.info("引用记录已清空")
