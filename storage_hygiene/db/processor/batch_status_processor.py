import json
from dataclasses import asdict
from typing import Any, Dict, Optional

from storage_hygiene.common.exceptions import ConcurrencyConflictError
from storage_hygiene.common.progress_context import FailedItem, SkippedItem
from storage_hygiene.db.db_constants import DBConstants
from storage_hygiene.db.processor.base_db_processor import BaseDBProcessor
from storage_hygiene.model.db.batch_status_db_model import BatchStatusDBModel

_T = DBConstants.BatchStatus


class BatchStatusProcessor(BaseDBProcessor):
    """
    用途说明：批量处理状态处理器，batch_status 表只有一行（id = 1），
    更新规则与扫描状态一致：按 version 乐观锁写入。
    """

    @staticmethod
    def _to_model(row: Dict[str, Any]) -> BatchStatusDBModel:
        return BatchStatusDBModel(
            task_id=row[_T.COL_TASK_ID],
            phase=row[_T.COL_PHASE],
            asset_ids=json.loads(row[_T.COL_ASSET_IDS] or "[]"),
            keep_original=bool(row[_T.COL_KEEP_ORIGINAL]),
            total=row[_T.COL_TOTAL] or 0,
            processed=row[_T.COL_PROCESSED] or 0,
            succeeded=row[_T.COL_SUCCEEDED] or 0,
            failed=row[_T.COL_FAILED] or 0,
            skipped=row[_T.COL_SKIPPED] or 0,
            failed_items=[FailedItem(**d) for d in json.loads(row[_T.COL_FAILED_ITEMS] or "[]")],
            skipped_items=[SkippedItem(**d) for d in json.loads(row[_T.COL_SKIPPED_ITEMS] or "[]")],
            saved_bytes=row[_T.COL_SAVED_BYTES] or 0,
            kept_original_count=row[_T.COL_KEPT_ORIGINAL_COUNT] or 0,
            start_time=row[_T.COL_START_TIME],
            end_time=row[_T.COL_END_TIME],
            error_message=row[_T.COL_ERROR_MESSAGE],
            version=row[_T.COL_VERSION] or 0
        )

    @staticmethod
    def get() -> Optional[BatchStatusDBModel]:
        """
        用途说明：读取批量任务状态。
        返回值说明：Optional[BatchStatusDBModel] - 从未创建过任务时返回 None
        """
        row = BaseDBProcessor._execute(
            f"SELECT * FROM {_T.TABLE_NAME} WHERE {_T.COL_ID} = ?", (_T.SINGLETON_ID,),
            is_query=True, fetch_one=True
        )
        return BatchStatusProcessor._to_model(row) if row else None

    @staticmethod
    def get_or_create() -> BatchStatusDBModel:
        BaseDBProcessor._execute(
            f"INSERT OR IGNORE INTO {_T.TABLE_NAME} ({_T.COL_ID}, {_T.COL_PHASE}, {_T.COL_VERSION}) VALUES (?, ?, 0)",
            (_T.SINGLETON_ID, DBConstants.BatchPhase.IDLE)
        )
        return BatchStatusProcessor.get()

    @staticmethod
    def update(status: BatchStatusDBModel) -> BatchStatusDBModel:
        """
        用途说明：按版本号整体覆盖批量任务状态。
        入参说明：status (BatchStatusDBModel) - 基于最新读取结果修改后的状态
        返回值说明：BatchStatusDBModel - version 已加一
        异常说明：版本不一致时抛出 ConcurrencyConflictError
        """
        affected: int = BaseDBProcessor._execute(
            f"""
            UPDATE {_T.TABLE_NAME} SET
                {_T.COL_TASK_ID} = ?, {_T.COL_PHASE} = ?, {_T.COL_ASSET_IDS} = ?, {_T.COL_KEEP_ORIGINAL} = ?,
                {_T.COL_TOTAL} = ?, {_T.COL_PROCESSED} = ?, {_T.COL_SUCCEEDED} = ?, {_T.COL_FAILED} = ?,
                {_T.COL_SKIPPED} = ?, {_T.COL_FAILED_ITEMS} = ?, {_T.COL_SKIPPED_ITEMS} = ?,
                {_T.COL_SAVED_BYTES} = ?, {_T.COL_KEPT_ORIGINAL_COUNT} = ?, {_T.COL_START_TIME} = ?,
                {_T.COL_END_TIME} = ?, {_T.COL_ERROR_MESSAGE} = ?, {_T.COL_VERSION} = {_T.COL_VERSION} + 1
            WHERE {_T.COL_ID} = ? AND {_T.COL_VERSION} = ?
            """,
            (
                status.task_id, status.phase, json.dumps(status.asset_ids), int(status.keep_original),
                status.total, status.processed, status.succeeded, status.failed, status.skipped,
                json.dumps([asdict(i) for i in status.failed_items], ensure_ascii=False),
                json.dumps([asdict(i) for i in status.skipped_items], ensure_ascii=False),
                status.saved_bytes, status.kept_original_count, status.start_time, status.end_time,
                status.error_message, _T.SINGLETON_ID, status.version
            )
        )
        if affected == 0:
            raise ConcurrencyConflictError(f"批量任务状态已被并发修改 (version={status.version})")
        status.version += 1
        return status
