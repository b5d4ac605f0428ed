from typing import List, Optional

from storage_hygiene.common.base_scan_service import BaseScanService
from storage_hygiene.common.exceptions import StorageHygieneError, ValidationError
from storage_hygiene.common.log_utils import LogUtils
from storage_hygiene.db.db_constants import DBConstants
from storage_hygiene.db.processor_manager import processor_manager
from storage_hygiene.model.db.broken_link_db_model import BrokenLinkDBModel
from storage_hygiene.model.db.scan_status_db_model import ScanStatusDBModel
from storage_hygiene.model.pagination_result import PaginationResult
from storage_hygiene.reference.reference_service import ReferenceService
from storage_hygiene.reference.whitelist_service import WhitelistService


class BrokenLinkService:
    """
    用途说明：失效链接服务。失效链接检测在引用扫描中同步完成，
    这里负责单独触发、状态查询、结果检索以及"加入白名单"等操作。
    """

    def __init__(self, reference_service: ReferenceService) -> None:
        self.reference_service: ReferenceService = reference_service

    def start_scan(self) -> ScanStatusDBModel:
        """
        用途说明：触发失效链接扫描：先把失效链接状态切换为 SCANNING，再触发一轮引用扫描。
        返回值说明：ScanStatusDBModel - 切换后的失效链接状态
        异常说明：任一扫描进行中时抛出 StateConflictError，此时失效链接状态会被标记为 ERROR
        """
        status: ScanStatusDBModel = BaseScanService.claim_scan(DBConstants.ScanType.BROKEN_LINK)
        try:
            self.reference_service.start_scan()
        except StorageHygieneError as e:
            LogUtils.error(f"失效链接扫描启动失败: {e.message}")
            BaseScanService._update_status(
                DBConstants.ScanType.BROKEN_LINK, lambda s: BaseScanService._apply_error(s, e.message)
            )
            raise
        LogUtils.info("失效链接扫描已启动")
        return status

    def get_status(self) -> ScanStatusDBModel:
        return processor_manager.scan_status_processor.get_or_create(DBConstants.ScanType.BROKEN_LINK)

    def list_broken_links(self, page: int = 1, limit: int = 20, source_type: Optional[str] = None,
                          keyword: Optional[str] = None, sort: Optional[str] = None) -> PaginationResult[BrokenLinkDBModel]:
        """
        用途说明：分页查询失效链接。
        入参说明：
            page / limit (int): 分页参数
            source_type (Optional[str]): 来源类型过滤
            keyword (Optional[str]): 匹配链接或来源标题
            sort (Optional[str]): "字段,方向"，字段为 source_count（默认，倒序）或 discovered_at
        返回值说明：PaginationResult[BrokenLinkDBModel]
        """
        sort_by: Optional[str] = None
        order_asc: bool = False
        if sort:
            parts: List[str] = sort.split(",")
            sort_by = parts[0].strip()
            order_asc = len(parts) > 1 and parts[1].strip().lower() == "asc"
        return processor_manager.broken_link_processor.search_paged(page, limit, source_type, keyword, sort_by, order_asc)

    def get_source_types(self) -> List[str]:
        return processor_manager.broken_link_processor.get_source_types()

    def add_to_whitelist(self, urls: Optional[List[str]], note: Optional[str] = None) -> int:
        """
        用途说明：把失效链接加入白名单（精确匹配），并删除对应的失效链接记录。
        入参说明：
            urls (Optional[List[str]]): 链接列表
            note (Optional[str]): 备注
        返回值说明：int - 删除的失效链接记录数
        """
        if not urls:
            raise ValidationError("URL 不能为空")
        WhitelistService.batch_add(urls, note)
        removed: int = processor_manager.broken_link_processor.delete_by_urls([u.strip() for u in urls if u])

        if removed:
            def mutate(status: ScanStatusDBModel) -> None:
                if "broken_link_count" in status.counters:
                    status.counters["broken_link_count"] = max(0, status.counters["broken_link_count"] - removed)

            BaseScanService._update_status(DBConstants.ScanType.BROKEN_LINK, mutate)
        LogUtils.info(f"已将 {len(urls)} 个链接加入白名单，移除失效链接记录 {removed} 条")
        return removed

    def clear_all(self) -> None:
        processor_manager.broken_link_processor.clear_all()
        self.reference_service.reset_status(DBConstants.ScanType.BROKEN_LINK)
        LogUtils.info("失效链接记录已清空")
