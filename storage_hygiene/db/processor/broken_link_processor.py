import json
from typing import Any, Dict, List, Optional

from storage_hygiene.db.db_constants import DBConstants
from storage_hygiene.db.processor.base_db_processor import BaseDBProcessor
from storage_hygiene.model.db.broken_link_db_model import BrokenLinkDBModel
from storage_hygiene.model.pagination_result import PaginationResult
from storage_hygiene.model.source_ref import SourceRef

_T = DBConstants.BrokenLink


class BrokenLinkProcessor(BaseDBProcessor):
    """
    用途：失效链接处理器，负责 broken_links 表的读写与分页检索
    """

    # 接口排序字段 -> 列名
    SORT_COLUMNS: Dict[str, str] = {
        "source_count": _T.COL_SOURCE_COUNT,
        "discovered_at": _T.COL_DISCOVERED_AT,
        "url": _T.COL_URL
    }

    @staticmethod
    def _to_model(row: Dict[str, Any]) -> BrokenLinkDBModel:
        return BrokenLinkDBModel(
            id=row[_T.COL_ID],
            record_key=row[_T.COL_RECORD_KEY],
            url=row[_T.COL_URL],
            sources=[SourceRef.from_dict(d) for d in json.loads(row[_T.COL_SOURCES] or "[]")],
            source_count=row[_T.COL_SOURCE_COUNT] or 0,
            discovered_at=row[_T.COL_DISCOVERED_AT],
            pending_delete=bool(row[_T.COL_PENDING_DELETE])
        )

    @staticmethod
    def mark_all_pending_delete() -> int:
        return BaseDBProcessor._execute(
            f"UPDATE {_T.TABLE_NAME} SET {_T.COL_PENDING_DELETE} = 1 WHERE {_T.COL_PENDING_DELETE} = 0"
        )

    @staticmethod
    def delete_pending() -> int:
        return BaseDBProcessor._execute(f"DELETE FROM {_T.TABLE_NAME} WHERE {_T.COL_PENDING_DELETE} = 1")

    @staticmethod
    def batch_insert(records: List[BrokenLinkDBModel]) -> int:
        """
        用途：批量写入失效链接，同时冗余保存来源类型列表以支持按类型过滤
        入参说明：records (List[BrokenLinkDBModel]) - 待写入记录
        返回值说明：int - 写入条数
        """
        query: str = f"""
            INSERT INTO {_T.TABLE_NAME} (
                {_T.COL_RECORD_KEY}, {_T.COL_URL}, {_T.COL_SOURCES}, {_T.COL_SOURCE_COUNT},
                {_T.COL_SOURCE_TYPES}, {_T.COL_DISCOVERED_AT}, {_T.COL_PENDING_DELETE}
            ) VALUES (?, ?, ?, ?, ?, ?, 0)
        """
        params: List[tuple] = []
        for r in records:
            source_types: List[str] = sorted({s.source_type for s in r.sources})
            params.append((
                r.record_key,
                r.url,
                json.dumps([s.to_dict() for s in r.sources], ensure_ascii=False),
                r.source_count,
                ",".join(source_types),
                r.discovered_at
            ))
        return BaseDBProcessor._execute_batch(query, params)

    @staticmethod
    def get_all() -> List[BrokenLinkDBModel]:
        rows = BaseDBProcessor._execute(
            f"SELECT * FROM {_T.TABLE_NAME} WHERE {_T.COL_PENDING_DELETE} = 0 ORDER BY {_T.COL_URL}",
            is_query=True
        )
        return [BrokenLinkProcessor._to_model(r) for r in rows]

    @staticmethod
    def search_paged(page: int, limit: int, source_type: Optional[str] = None, keyword: Optional[str] = None,
                     sort_by: Optional[str] = None, order_asc: bool = False) -> PaginationResult[BrokenLinkDBModel]:
        """
        用途：分页检索失效链接
        入参说明：
            page / limit (int): 分页参数
            source_type (Optional[str]): 来源类型过滤，如 Post
            keyword (Optional[str]): 匹配链接或来源标题（不区分大小写）
            sort_by (Optional[str]): source_count / discovered_at / url，默认 source_count
            order_asc (bool): 是否升序
        返回值说明：PaginationResult[BrokenLinkDBModel]
        """
        where: List[str] = [f"{_T.COL_PENDING_DELETE} = 0"]
        params: List[Any] = []
        if source_type:
            where.append(f"(',' || {_T.COL_SOURCE_TYPES} || ',') LIKE ?")
            params.append(f"%,{source_type},%")
        if keyword:
            where.append(f"(LOWER({_T.COL_URL}) LIKE ? OR LOWER({_T.COL_SOURCES}) LIKE ?)")
            like: str = f"%{keyword.lower()}%"
            params.extend([like, like])

        column: str = BrokenLinkProcessor.SORT_COLUMNS.get(sort_by or "", _T.COL_SOURCE_COUNT)
        return BaseDBProcessor._search_paged_list(
            _T.TABLE_NAME, BrokenLinkProcessor._to_model, page, limit, where, params, column, order_asc
        )

    @staticmethod
    def get_source_types() -> List[str]:
        """用途：获取所有失效链接涉及的来源类型（去重、排序）。"""
        rows = BaseDBProcessor._execute(
            f"SELECT DISTINCT {_T.COL_SOURCE_TYPES} FROM {_T.TABLE_NAME} WHERE {_T.COL_PENDING_DELETE} = 0",
            is_query=True
        )
        types = set()
        for row in rows:
            for t in (row[_T.COL_SOURCE_TYPES] or "").split(","):
                if t:
                    types.add(t)
        return sorted(types)

    @staticmethod
    def delete_by_urls(urls: List[str]) -> int:
        if not urls:
            return 0
        placeholders: str = BaseDBProcessor._in_placeholders(urls)
        return BaseDBProcessor._execute(f"DELETE FROM {_T.TABLE_NAME} WHERE {_T.COL_URL} IN ({placeholders})", urls)

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
