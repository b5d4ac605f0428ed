from typing import Any, Dict, List, Optional

from storage_hygiene.db.db_constants import DBConstants
from storage_hygiene.db.processor.base_db_processor import BaseDBProcessor
from storage_hygiene.model.db.cleanup_log_db_model import CleanupLogDBModel
from storage_hygiene.model.pagination_result import PaginationResult

_T = DBConstants.CleanupLog


class CleanupLogProcessor(BaseDBProcessor):
    """
    用途：清理日志处理器，记录每一次附件删除
    """

    @staticmethod
    def insert(log: CleanupLogDBModel) -> int:
        return BaseDBProcessor._execute(
            f"INSERT INTO {_T.TABLE_NAME} ({_T.COL_ASSET_ID}, {_T.COL_DISPLAY_NAME}, {_T.COL_SIZE}, {_T.COL_REASON}, "
            f"{_T.COL_OPERATOR}, {_T.COL_DELETED_AT}, {_T.COL_ERROR_MESSAGE}) VALUES (?, ?, ?, ?, ?, ?, ?)",
            (log.asset_id, log.display_name, log.size, log.reason, log.operator, log.deleted_at, log.error_message)
        )

    @staticmethod
    def get_paged(page: int, limit: int, reason: Optional[str] = None) -> PaginationResult[CleanupLogDBModel]:
        """
        用途：分页查询清理日志，按删除时间倒序
        入参说明：
            page / limit (int): 分页参数
            reason (Optional[str]): DUPLICATE / UNREFERENCED 过滤
        返回值说明：PaginationResult[CleanupLogDBModel]
        """
        where: List[str] = []
        params: List[Any] = []
        if reason:
            where.append(f"{_T.COL_REASON} = ?")
            params.append(reason)
        return BaseDBProcessor._search_paged_list(
            _T.TABLE_NAME, lambda row: CleanupLogDBModel(**row), page, limit, where, params, _T.COL_DELETED_AT, False
        )

    @staticmethod
    def delete_before(time_str: str) -> int:
        """用途：删除早于指定时间的日志，返回删除条数。"""
        return BaseDBProcessor._execute(f"DELETE FROM {_T.TABLE_NAME} WHERE {_T.COL_DELETED_AT} < ?", (time_str,))

    @staticmethod
    def get_all() -> List[CleanupLogDBModel]:
        rows: List[Dict[str, Any]] = BaseDBProcessor._execute(
            f"SELECT * FROM {_T.TABLE_NAME} ORDER BY {_T.COL_ID}", is_query=True
        )
        return [CleanupLogDBModel(**r) for r in rows]
