from typing import Any, List, Optional

from storage_hygiene.db.db_constants import DBConstants
from storage_hygiene.db.processor.base_db_processor import BaseDBProcessor
from storage_hygiene.model.db.processing_log_db_model import ProcessingLogDBModel
from storage_hygiene.model.pagination_result import PaginationResult

_T = DBConstants.ProcessingLog


class ProcessingLogProcessor(BaseDBProcessor):
    """
    用途：批量处理日志处理器
    """

    @staticmethod
    def insert(log: ProcessingLogDBModel) -> int:
        return BaseDBProcessor._execute(
            f"INSERT INTO {_T.TABLE_NAME} ({_T.COL_TASK_ID}, {_T.COL_ASSET_ID}, {_T.COL_ORIGINAL_FILENAME}, "
            f"{_T.COL_RESULT_FILENAME}, {_T.COL_ORIGINAL_SIZE}, {_T.COL_RESULT_SIZE}, {_T.COL_STATUS}, "
            f"{_T.COL_MESSAGE}, {_T.COL_PROCESSED_AT}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (log.task_id, log.asset_id, log.original_filename, log.result_filename, log.original_size,
             log.result_size, log.status, log.message, log.processed_at)
        )

    @staticmethod
    def get_paged(page: int, limit: int, task_id: Optional[str] = None) -> PaginationResult[ProcessingLogDBModel]:
        where: List[str] = []
        params: List[Any] = []
        if task_id:
            where.append(f"{_T.COL_TASK_ID} = ?")
            params.append(task_id)
        return BaseDBProcessor._search_paged_list(
            _T.TABLE_NAME, lambda row: ProcessingLogDBModel(**row), page, limit, where, params,
            _T.COL_PROCESSED_AT, False
        )

    @staticmethod
    def get_by_task(task_id: str) -> List[ProcessingLogDBModel]:
        rows = BaseDBProcessor._execute(
            f"SELECT * FROM {_T.TABLE_NAME} WHERE {_T.COL_TASK_ID} = ? ORDER BY {_T.COL_ID}", (task_id,), is_query=True
        )
        return [ProcessingLogDBModel(**r) for r in rows]

    @staticmethod
    def delete_before(time_str: str) -> int:
        return BaseDBProcessor._execute(f"DELETE FROM {_T.TABLE_NAME} WHERE {_T.COL_PROCESSED_AT} < ?", (time_str,))
