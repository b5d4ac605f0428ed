from typing import Any, Dict, List, Optional

from storage_hygiene.db.db_constants import DBConstants
from storage_hygiene.db.processor.base_db_processor import BaseDBProcessor
from storage_hygiene.model.db.whitelist_entry_db_model import WhitelistEntryDBModel

_T = DBConstants.WhitelistEntry


class WhitelistProcessor(BaseDBProcessor):
    """
    用途说明：白名单处理器，负责 whitelist_entries 表的增删查。
    同一 url_pattern 只保留一条，重复添加时更新模式与备注。
    """

    @staticmethod
    def _to_model(row: Dict[str, Any]) -> WhitelistEntryDBModel:
        return WhitelistEntryDBModel(**row)

    @staticmethod
    def upsert_entries(entries: List[WhitelistEntryDBModel]) -> int:
        """
        用途说明：批量新增或更新白名单条目。
        入参说明：entries (List[WhitelistEntryDBModel]) - 待写入条目
        返回值说明：int - 受影响条数
        """
        query: str = f"""
            INSERT INTO {_T.TABLE_NAME} ({_T.COL_URL_PATTERN}, {_T.COL_MATCH_MODE}, {_T.COL_NOTE}, {_T.COL_CREATED_AT})
            VALUES (?, ?, ?, ?)
            ON CONFLICT({_T.COL_URL_PATTERN}) DO UPDATE SET
                {_T.COL_MATCH_MODE} = excluded.{_T.COL_MATCH_MODE},
                {_T.COL_NOTE} = excluded.{_T.COL_NOTE}
        """
        params: List[tuple] = [(e.url_pattern, e.match_mode, e.note, e.created_at) for e in entries]
        return BaseDBProcessor._execute_batch(query, params)

    @staticmethod
    def get_by_pattern(url_pattern: str) -> Optional[WhitelistEntryDBModel]:
        row = BaseDBProcessor._execute(
            f"SELECT * FROM {_T.TABLE_NAME} WHERE {_T.COL_URL_PATTERN} = ?", (url_pattern,),
            is_query=True, fetch_one=True
        )
        return WhitelistProcessor._to_model(row) if row else None

    @staticmethod
    def get_all() -> List[WhitelistEntryDBModel]:
        """用途说明：获取全部白名单条目，按创建时间倒序。"""
        rows = BaseDBProcessor._execute(
            f"SELECT * FROM {_T.TABLE_NAME} ORDER BY {_T.COL_CREATED_AT} DESC, {_T.COL_ID} DESC", is_query=True
        )
        return [WhitelistProcessor._to_model(r) for r in rows]

    @staticmethod
    def search(keyword: str) -> List[WhitelistEntryDBModel]:
        """
        用途说明：按关键字检索白名单（匹配链接或备注，不区分大小写）。
        入参说明：keyword (str) - 关键字
        返回值说明：List[WhitelistEntryDBModel]
        """
        like: str = f"%{keyword.lower()}%"
        rows = BaseDBProcessor._execute(
            f"SELECT * FROM {_T.TABLE_NAME} WHERE LOWER({_T.COL_URL_PATTERN}) LIKE ? "
            f"OR LOWER(COALESCE({_T.COL_NOTE}, '')) LIKE ? ORDER BY {_T.COL_CREATED_AT} DESC, {_T.COL_ID} DESC",
            (like, like), is_query=True
        )
        return [WhitelistProcessor._to_model(r) for r in rows]

    @staticmethod
    def delete_by_id(entry_id: int) -> int:
        return BaseDBProcessor._execute(f"DELETE FROM {_T.TABLE_NAME} WHERE {_T.COL_ID} = ?", (entry_id,))

    @staticmethod
    def clear_all() -> int:
        return BaseDBProcessor._clear_table(_T.TABLE_NAME)
