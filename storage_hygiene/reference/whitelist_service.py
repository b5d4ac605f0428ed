from typing import List, Optional

from storage_hygiene.common.exceptions import ValidationError
from storage_hygiene.common.log_utils import LogUtils
from storage_hygiene.common.utils import Utils
from storage_hygiene.db.db_constants import DBConstants
from storage_hygiene.db.processor_manager import processor_manager
from storage_hygiene.model.db.whitelist_entry_db_model import WhitelistEntryDBModel


class WhitelistService:
    """
    用途：失效链接白名单服务。命中白名单的链接不会被记录为失效链接。
    """

    @staticmethod
    def list_entries(keyword: Optional[str] = None) -> List[WhitelistEntryDBModel]:
        """
        用途：获取白名单列表
        入参说明：keyword (Optional[str]) - 匹配链接或备注的关键字，为空时返回全部
        返回值说明：List[WhitelistEntryDBModel]
        """
        if keyword and keyword.strip():
            return processor_manager.whitelist_processor.search(keyword.strip())
        return processor_manager.whitelist_processor.get_all()

    @staticmethod
    def add(url_pattern: Optional[str], match_mode: Optional[str] = None,
            note: Optional[str] = None) -> WhitelistEntryDBModel:
        """
        用途：添加白名单条目，相同链接重复添加时更新匹配模式与备注
        入参说明：
            url_pattern (Optional[str]): 链接或链接前缀
            match_mode (Optional[str]): exact / prefix，默认 exact
            note (Optional[str]): 备注
        返回值说明：WhitelistEntryDBModel - 写入后的条目
        """
        if not url_pattern or not url_pattern.strip():
            raise ValidationError("URL 不能为空")
        mode: str = (match_mode or DBConstants.MatchMode.EXACT).lower()
        if mode not in DBConstants.MatchMode.ALL:
            raise ValidationError(f"不支持的匹配模式: {match_mode}")

        pattern: str = url_pattern.strip()
        entry: WhitelistEntryDBModel = WhitelistEntryDBModel(
            url_pattern=pattern, match_mode=mode, note=note, created_at=Utils.now_str()
        )
        processor_manager.whitelist_processor.upsert_entries([entry])
        LogUtils.info(f"已添加白名单: {pattern} ({mode})")
        return processor_manager.whitelist_processor.get_by_pattern(pattern)

    @staticmethod
    def batch_add(urls: Optional[List[str]], note: Optional[str] = None) -> int:
        """
        用途：批量添加精确匹配的白名单条目
        入参说明：
            urls (Optional[List[str]]): 链接列表，空白项会被忽略
            note (Optional[str]): 备注
        返回值说明：int - 实际写入的条目数
        """
        patterns: List[str] = []
        for url in urls or []:
            if url and url.strip() and url.strip() not in patterns:
                patterns.append(url.strip())
        if not patterns:
            raise ValidationError("URL 不能为空")

        now: str = Utils.now_str()
        entries: List[WhitelistEntryDBModel] = [
            WhitelistEntryDBModel(url_pattern=p, match_mode=DBConstants.MatchMode.EXACT, note=note, created_at=now)
            for p in patterns
        ]
        processor_manager.whitelist_processor.upsert_entries(entries)
        LogUtils.info(f"已批量添加白名单 {len(entries)} 条")
        return len(entries)

    @staticmethod
    def delete(entry_id: int) -> None:
        if processor_manager.whitelist_processor.delete_by_id(entry_id) == 0:
            raise ValidationError("白名单条目不存在")
        LogUtils.info(f"已删除白名单条目: {entry_id}")

    @staticmethod
    def find_match(url: str, entries: Optional[List[WhitelistEntryDBModel]] = None) -> Optional[WhitelistEntryDBModel]:
        """
        用途：查找命中链接的白名单条目
        入参说明：
            url (str): 待检查链接
            entries (Optional[List]): 预先加载的白名单，扫描时整轮只加载一次；为空时从数据库读取
        返回值说明：Optional[WhitelistEntryDBModel] - 未命中时为 None
        """
        if entries is None:
            entries = processor_manager.whitelist_processor.get_all()
        for entry in entries:
            if entry.matches(url):
                return entry
        return None

    @staticmethod
    def is_whitelisted(url: str, entries: Optional[List[WhitelistEntryDBModel]] = None) -> bool:
        return WhitelistService.find_match(url, entries) is not None

    @staticmethod
    def clear_all() -> int:
        return processor_manager.whitelist_processor.clear_all()
