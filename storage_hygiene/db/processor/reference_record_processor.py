import json
from typing import Any, Dict, List, Optional

from storage_hygiene.db.db_constants import DBConstants
from storage_hygiene.db.processor.base_db_processor import BaseDBProcessor
from storage_hygiene.model.db.reference_record_db_model import ReferenceRecordDBModel
from storage_hygiene.model.source_ref import SourceRef

_T = DBConstants.ReferenceRecord


class ReferenceRecordProcessor(BaseDBProcessor):
    """
    用途：引用记录处理器，负责 reference_records 表的读写。
    读取类方法默认过滤掉 pending_delete = 1 的记录。
    """

    @staticmethod
    def _to_model(row: Dict[str, Any]) -> ReferenceRecordDBModel:
        return ReferenceRecordDBModel(
            id=row[_T.COL_ID],
            record_key=row[_T.COL_RECORD_KEY],
            asset_id=row[_T.COL_ASSET_ID],
            reference_count=row[_T.COL_REFERENCE_COUNT] or 0,
            sources=[SourceRef.from_dict(d) for d in json.loads(row[_T.COL_SOURCES] or "[]")],
            last_scanned_at=row[_T.COL_LAST_SCANNED_AT],
            pending_delete=bool(row[_T.COL_PENDING_DELETE])
        )

    @staticmethod
    def mark_all_pending_delete() -> int:
        """
        用途：将现存的全部引用记录标记为待删除（两阶段替换的第一步）
        返回值说明：int - 被标记的记录数
        """
        return BaseDBProcessor._execute(
            f"UPDATE {_T.TABLE_NAME} SET {_T.COL_PENDING_DELETE} = 1 WHERE {_T.COL_PENDING_DELETE} = 0"
        )

    @staticmethod
    def delete_pending() -> int:
        """用途：物理删除所有已标记待删除的记录，返回删除条数。"""
        return BaseDBProcessor._execute(f"DELETE FROM {_T.TABLE_NAME} WHERE {_T.COL_PENDING_DELETE} = 1")

    @staticmethod
    def batch_insert(records: List[ReferenceRecordDBModel]) -> int:
        """
        用途：批量写入本轮引用记录
        入参说明：records (List[ReferenceRecordDBModel]) - 待写入记录
        返回值说明：int - 写入条数
        """
        query: str = f"""
            INSERT INTO {_T.TABLE_NAME} (
                {_T.COL_RECORD_KEY}, {_T.COL_ASSET_ID}, {_T.COL_REFERENCE_COUNT},
                {_T.COL_SOURCES}, {_T.COL_LAST_SCANNED_AT}, {_T.COL_PENDING_DELETE}
            ) VALUES (?, ?, ?, ?, ?, 0)
        """
        params: List[tuple] = [(
            r.record_key,
            r.asset_id,
            r.reference_count,
            json.dumps([s.to_dict() for s in r.sources], ensure_ascii=False),
            r.last_scanned_at
        ) for r in records]
        return BaseDBProcessor._execute_batch(query, params)

    @staticmethod
    def get_all() -> List[ReferenceRecordDBModel]:
        rows = BaseDBProcessor._execute(
            f"SELECT * FROM {_T.TABLE_NAME} WHERE {_T.COL_PENDING_DELETE} = 0 ORDER BY {_T.COL_ASSET_ID}",
            is_query=True
        )
        return [ReferenceRecordProcessor._to_model(r) for r in rows]

    @staticmethod
    def get_by_asset_id(asset_id: str) -> Optional[ReferenceRecordDBModel]:
        """
        用途：按附件 ID 获取有效引用记录
        入参说明：asset_id (str) - 附件 ID
        返回值说明：Optional[ReferenceRecordDBModel] - 不存在时返回 None
        """
        row = BaseDBProcessor._execute(
            f"SELECT * FROM {_T.TABLE_NAME} WHERE {_T.COL_ASSET_ID} = ? AND {_T.COL_PENDING_DELETE} = 0",
            (asset_id,), is_query=True, fetch_one=True
        )
        return ReferenceRecordProcessor._to_model(row) if row else None

    @staticmethod
    def get_reference_count_map() -> Dict[str, int]:
        """
        用途：获取 附件 ID -> 引用次数 的映射（仅有效记录）
        返回值说明：Dict[str, int]
        """
        rows = BaseDBProcessor._execute(
            f"SELECT {_T.COL_ASSET_ID}, {_T.COL_REFERENCE_COUNT} FROM {_T.TABLE_NAME} WHERE {_T.COL_PENDING_DELETE} = 0",
            is_query=True
        )
        return {r[_T.COL_ASSET_ID]: r[_T.COL_REFERENCE_COUNT] or 0 for r in rows}

    @staticmethod
    def delete_by_asset_ids(asset_ids: List[str]) -> int:
        if not asset_ids:
            return 0
        placeholders: str = BaseDBProcessor._in_placeholders(asset_ids)
        return BaseDBProcessor._execute(
            f"DELETE FROM {_T.TABLE_NAME} WHERE {_T.COL_ASSET_ID} IN ({placeholders})", asset_ids
        )

    @staticmethod
    def count() -> int:
        res = BaseDBProcessor._execute(
            f"SELECT COUNT(*) AS total FROM {_T.TABLE_NAME} WHERE {_T.COL_PENDING_DELETE} = 0",
            is_query=True, fetch_one=True
        )
        return res['total'] if res else 0

    @staticmethod
    def clear_all() -> int:
        return BaseDBProcessor._clear_table(_T.TABLE_NAME)
