import sqlite3
from typing import Any, Callable, Dict, List, Optional, Sequence, TypeVar

from storage_hygiene.common.log_utils import LogUtils
from storage_hygiene.db.db_manager import db_manager
from storage_hygiene.model.pagination_result import PaginationResult

T = TypeVar('T')


class BaseDBProcessor:
    """
    用途：数据库处理器基类，封装 SQL 执行、批量写入、清表与分页查询等通用逻辑
    """

    @staticmethod
    def _execute(query: str, params: Sequence[Any] = (), is_query: bool = False,
                 fetch_one: bool = False) -> Any:
        """
        用途：通用 SQL 执行方法，执行失败时记录日志并向上抛出
        入参说明：
            query (str): SQL 语句
            params (Sequence): 参数
            is_query (bool): 是否为查询
            fetch_one (bool): 是否仅取一条
        返回值说明：
            Any: 查询结果（字典 / 字典列表）或受影响的行数
        """
        conn: Optional[sqlite3.Connection] = None
        try:
            conn = db_manager.get_connection()
            conn.row_factory = sqlite3.Row
            cursor = conn.cursor()
            cursor.execute(query, tuple(params))

            if is_query:
                if fetch_one:
                    row = cursor.fetchone()
                    return dict(row) if row else None
                return [dict(r) for r in cursor.fetchall()]

            conn.commit()
            return cursor.rowcount
        except sqlite3.Error as e:
            LogUtils.error(f"SQL 执行失败: {query.strip()}, 错误: {e}")
            raise
        finally:
            if conn:
                conn.close()

    @staticmethod
    def _execute_batch(query: str, data: List[tuple]) -> int:
        """
        用途：批量执行 SQL 语句（用于高效插入）
        入参说明：
            query (str): SQL 语句
            data (List[tuple]): 参数元组列表
        返回值说明：
            int: 受影响的总行数
        """
        if not data:
            return 0
        conn: Optional[sqlite3.Connection] = None
        try:
            conn = db_manager.get_connection()
            cursor = conn.cursor()
            cursor.executemany(query, data)
            conn.commit()
            return cursor.rowcount
        except sqlite3.Error as e:
            LogUtils.error(f"批量执行失败: {query.strip()}, 错误: {e}")
            raise
        finally:
            if conn:
                conn.close()

    @staticmethod
    def _clear_table(table_name: str) -> int:
        """
        用途：清空指定表并重置自增序列
        入参说明：
            table_name (str): 表名
        返回值说明：
            int: 删除的行数
        """
        deleted: int = BaseDBProcessor._execute(f'DELETE FROM {table_name}')
        BaseDBProcessor._execute("DELETE FROM sqlite_sequence WHERE name=?", (table_name,))
        LogUtils.info(f"表 {table_name} 已清空，共删除 {deleted} 条记录")
        return deleted

    @staticmethod
    def _in_placeholders(values: Sequence[Any]) -> str:
        return ','.join(['?'] * len(values))

    @staticmethod
    def _search_paged_list(
            table_name: str,
            row_mapper: Callable[[Dict[str, Any]], T],
            page: int,
            limit: int,
            where_clauses: List[str],
            params: List[Any],
            sort_by: str,
            order_asc: bool
    ) -> PaginationResult[T]:
        """
        用途：通用分页查询
        入参说明：
            table_name (str): 表名
            row_mapper (Callable): 行字典到模型对象的转换函数
            page (int): 页码，从 1 开始
            limit (int): 每页条数
            where_clauses (List[str]): 以 AND 连接的过滤条件
            params (List[Any]): 过滤条件参数
            sort_by (str): 排序列（调用方负责校验）
            order_asc (bool): 是否升序
        返回值说明：
            PaginationResult[T]: 分页结果
        """
        where_sql: str = f"WHERE {' AND '.join(where_clauses)}" if where_clauses else ""
        order_str: str = "ASC" if order_asc else "DESC"
        page = max(1, page)
        offset: int = (page - 1) * limit

        total_res = BaseDBProcessor._execute(
            f"SELECT COUNT(*) AS total FROM {table_name} {where_sql}", params, is_query=True, fetch_one=True
        )
        total: int = total_res['total'] if total_res else 0

        rows = BaseDBProcessor._execute(
            f"SELECT * FROM {table_name} {where_sql} ORDER BY {sort_by} {order_str}, id ASC LIMIT ? OFFSET ?",
            list(params) + [limit, offset],
            is_query=True
        )
        return PaginationResult(
            total=total,
            list=[row_mapper(row) for row in rows],
            page=page,
            limit=limit,
            sort_by=sort_by,
            order=order_str
        )
