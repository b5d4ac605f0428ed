import json
from typing import Any, Dict, List, Optional

from storage_hygiene.common.exceptions import ConcurrencyConflictError
from storage_hygiene.db.db_constants import DBConstants
from storage_hygiene.db.processor.base_db_processor import BaseDBProcessor
from storage_hygiene.model.db.scan_status_db_model import ScanStatusDBModel

_T = DBConstants.ScanStatus


class ScanStatusProcessor(BaseDBProcessor):
    """
    用途说明：扫描状态处理器。每种扫描类型在 scan_status 表中对应一条单例记录，
    更新时按 version 做乐观锁校验，版本不一致时抛出 ConcurrencyConflictError。
    """

    @staticmethod
    def _to_model(row: Dict[str, Any]) -> ScanStatusDBModel:
        return ScanStatusDBModel(
            scan_type=row[_T.COL_SCAN_TYPE],
            phase=row[_T.COL_PHASE],
            start_time=row[_T.COL_START_TIME],
            last_scan_time=row[_T.COL_LAST_SCAN_TIME],
            counters=json.loads(row[_T.COL_COUNTERS] or "{}"),
            error_message=row[_T.COL_ERROR_MESSAGE],
            version=row[_T.COL_VERSION] or 0
        )

    @staticmethod
    def get(scan_type: str) -> Optional[ScanStatusDBModel]:
        row = BaseDBProcessor._execute(
            f"SELECT * FROM {_T.TABLE_NAME} WHERE {_T.COL_SCAN_TYPE} = ?", (scan_type,),
            is_query=True, fetch_one=True
        )
        return ScanStatusProcessor._to_model(row) if row else None

    @staticmethod
    def get_or_create(scan_type: str) -> ScanStatusDBModel:
        """
        用途说明：读取扫描状态，不存在时以 IDLE 初始化。
        入参说明：scan_type (str) - 扫描类型
        返回值说明：ScanStatusDBModel - 当前状态（含 version）
        """
        BaseDBProcessor._execute(
            f"INSERT OR IGNORE INTO {_T.TABLE_NAME} ({_T.COL_SCAN_TYPE}, {_T.COL_PHASE}, {_T.COL_COUNTERS}, {_T.COL_VERSION}) "
            f"VALUES (?, ?, '{{}}', 0)",
            (scan_type, DBConstants.ScanPhase.IDLE)
        )
        return ScanStatusProcessor.get(scan_type)

    @staticmethod
    def get_all() -> List[ScanStatusDBModel]:
        rows = BaseDBProcessor._execute(f"SELECT * FROM {_T.TABLE_NAME} ORDER BY {_T.COL_SCAN_TYPE}", is_query=True)
        return [ScanStatusProcessor._to_model(r) for r in rows]

    @staticmethod
    def update(status: ScanStatusDBModel) -> ScanStatusDBModel:
        """
        用途说明：按版本号更新状态记录。
        入参说明：status (ScanStatusDBModel) - 基于最新读取结果修改后的状态对象
        返回值说明：ScanStatusDBModel - 更新成功后的状态（version 已加一）
        异常说明：记录已被其他写入方修改时抛出 ConcurrencyConflictError
        """
        affected: int = BaseDBProcessor._execute(
            f"UPDATE {_T.TABLE_NAME} SET {_T.COL_PHASE} = ?, {_T.COL_START_TIME} = ?, {_T.COL_LAST_SCAN_TIME} = ?, "
            f"{_T.COL_COUNTERS} = ?, {_T.COL_ERROR_MESSAGE} = ?, {_T.COL_VERSION} = {_T.COL_VERSION} + 1 "
            f"WHERE {_T.COL_SCAN_TYPE} = ? AND {_T.COL_VERSION} = ?",
            (status.phase, status.start_time, status.last_scan_time, json.dumps(status.counters),
             status.error_message, status.scan_type, status.version)
        )
        if affected == 0:
            raise ConcurrencyConflictError(f"扫描状态 {status.scan_type} 已被并发修改 (version={status.version})")
        status.version += 1
        return status
