import sqlite3
from typing import Any, Dict, List, Optional

from storage_hygiene.common.log_utils import LogUtils
from storage_hygiene.common.utils import Utils
from storage_hygiene.db.db_constants import DBConstants
from storage_hygiene.db.db_manager import db_manager
from storage_hygiene.db.processor.base_db_processor import BaseDBProcessor
from storage_hygiene.model.db.duplicate_group_db_model import DuplicateGroupDBModel, DuplicateMemberDBModel
from storage_hygiene.model.pagination_result import PaginationResult

_G = DBConstants.DuplicateGroup
_M = DBConstants.DuplicateMember


class DuplicateGroupProcessor(BaseDBProcessor):
    """
    用途：重复文件分组处理器，负责 duplicate_groups 与 duplicate_members 两张表
    """

    @staticmethod
    def _to_group(row: Dict[str, Any]) -> DuplicateGroupDBModel:
        return DuplicateGroupDBModel(
            id=row[_G.COL_ID],
            record_key=row[_G.COL_RECORD_KEY],
            content_hash=row[_G.COL_CONTENT_HASH],
            file_size=row[_G.COL_FILE_SIZE] or 0,
            file_count=row[_G.COL_FILE_COUNT] or 0,
            savable_bytes=row[_G.COL_SAVABLE_BYTES] or 0,
            recommended_keep_id=row[_G.COL_RECOMMENDED_KEEP_ID],
            pending_delete=bool(row[_G.COL_PENDING_DELETE]),
            create_time=row[_G.COL_CREATE_TIME]
        )

    @staticmethod
    def _to_member(row: Dict[str, Any]) -> DuplicateMemberDBModel:
        return DuplicateMemberDBModel(
            id=row[_M.COL_ID],
            group_id=row[_M.COL_GROUP_ID],
            asset_id=row[_M.COL_ASSET_ID],
            display_name=row[_M.COL_DISPLAY_NAME] or "",
            size=row[_M.COL_SIZE] or 0,
            upload_time=row[_M.COL_UPLOAD_TIME],
            reference_count=row[_M.COL_REFERENCE_COUNT] or 0,
            position=row[_M.COL_POSITION] or 0
        )

    @staticmethod
    def batch_save_groups(groups: List[DuplicateGroupDBModel], conn: Optional[sqlite3.Connection] = None) -> int:
        """
        用途：批量写入重复分组及其成员
        入参说明：
            groups (List[DuplicateGroupDBModel]): 分组列表（含 members）
            conn (Optional[sqlite3.Connection]): 外部连接（可选，用于事务）
        返回值说明：
            int: 写入的分组数
        """
        if not groups:
            return 0

        local_conn: bool = False
        if conn is None:
            conn = db_manager.get_connection()
            local_conn = True

        try:
            cursor = conn.cursor()
            for group in groups:
                # 1. 写入分组，取回自增 ID
                cursor.execute(
                    f"INSERT INTO {_G.TABLE_NAME} ({_G.COL_RECORD_KEY}, {_G.COL_CONTENT_HASH}, {_G.COL_FILE_SIZE}, "
                    f"{_G.COL_FILE_COUNT}, {_G.COL_SAVABLE_BYTES}, {_G.COL_RECOMMENDED_KEEP_ID}, {_G.COL_PENDING_DELETE}, {_G.COL_CREATE_TIME}) "
                    f"VALUES (?, ?, ?, ?, ?, ?, 0, ?)",
                    (group.record_key, group.content_hash, group.file_size, group.file_count,
                     group.savable_bytes, group.recommended_keep_id, group.create_time or Utils.now_str())
                )
                group_id: int = cursor.lastrowid
                group.id = group_id

                # 2. 写入成员
                cursor.executemany(
                    f"INSERT INTO {_M.TABLE_NAME} ({_M.COL_GROUP_ID}, {_M.COL_ASSET_ID}, {_M.COL_DISPLAY_NAME}, "
                    f"{_M.COL_SIZE}, {_M.COL_UPLOAD_TIME}, {_M.COL_REFERENCE_COUNT}, {_M.COL_POSITION}) "
                    f"VALUES (?, ?, ?, ?, ?, ?, ?)",
                    [(group_id, m.asset_id, m.display_name, m.size, m.upload_time, m.reference_count, m.position)
                     for m in group.members]
                )

            if local_conn:
                conn.commit()
            return len(groups)
        except sqlite3.Error as e:
            if local_conn:
                conn.rollback()
            LogUtils.error(f"批量存储重复分组失败: {e}")
            raise
        finally:
            if local_conn:
                conn.close()

    @staticmethod
    def mark_all_pending_delete() -> int:
        """用途：将现存分组全部标记为待删除，新分组写入后再统一清理。"""
        return BaseDBProcessor._execute(
            f"UPDATE {_G.TABLE_NAME} SET {_G.COL_PENDING_DELETE} = 1 WHERE {_G.COL_PENDING_DELETE} = 0"
        )

    @staticmethod
    def delete_pending() -> int:
        """
        用途：物理删除已标记待删除的分组及其成员
        返回值说明：int - 删除的分组数
        """
        with db_manager.transaction() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"DELETE FROM {_M.TABLE_NAME} WHERE {_M.COL_GROUP_ID} IN "
                f"(SELECT {_G.COL_ID} FROM {_G.TABLE_NAME} WHERE {_G.COL_PENDING_DELETE} = 1)"
            )
            cursor.execute(f"DELETE FROM {_G.TABLE_NAME} WHERE {_G.COL_PENDING_DELETE} = 1")
            return cursor.rowcount

    @staticmethod
    def _attach_members(groups: List[DuplicateGroupDBModel]) -> List[DuplicateGroupDBModel]:
        if not groups:
            return groups
        group_ids: List[int] = [g.id for g in groups]
        rows = BaseDBProcessor._execute(
            f"SELECT * FROM {_M.TABLE_NAME} WHERE {_M.COL_GROUP_ID} IN ({BaseDBProcessor._in_placeholders(group_ids)}) "
            f"ORDER BY {_M.COL_GROUP_ID}, {_M.COL_POSITION}",
            group_ids, is_query=True
        )
        members_map: Dict[int, List[DuplicateMemberDBModel]] = {}
        for row in rows:
            member = DuplicateGroupProcessor._to_member(row)
            members_map.setdefault(member.group_id, []).append(member)
        for g in groups:
            g.members = members_map.get(g.id, [])
        return groups

    @staticmethod
    def get_groups_paged(page: int, limit: int) -> PaginationResult[DuplicateGroupDBModel]:
        """
        用途说明：分页获取有效重复分组，按可节省空间降序，成员一并加载。
        入参说明：
            page (int): 页码
            limit (int): 每页条数
        返回值说明：PaginationResult[DuplicateGroupDBModel]
        """
        result: PaginationResult[DuplicateGroupDBModel] = BaseDBProcessor._search_paged_list(
            _G.TABLE_NAME, DuplicateGroupProcessor._to_group, page, limit,
            [f"{_G.COL_PENDING_DELETE} = 0"], [], _G.COL_SAVABLE_BYTES, False
        )
        DuplicateGroupProcessor._attach_members(result.list)
        return result

    @staticmethod
    def get_all_groups() -> List[DuplicateGroupDBModel]:
        rows = BaseDBProcessor._execute(
            f"SELECT * FROM {_G.TABLE_NAME} WHERE {_G.COL_PENDING_DELETE} = 0 ORDER BY {_G.COL_SAVABLE_BYTES} DESC, {_G.COL_ID}",
            is_query=True
        )
        return DuplicateGroupProcessor._attach_members([DuplicateGroupProcessor._to_group(r) for r in rows])

    @staticmethod
    def get_by_hash(content_hash: str) -> Optional[DuplicateGroupDBModel]:
        """
        用途：按内容摘要获取有效分组（含成员）
        入参说明：content_hash (str) - 内容摘要
        返回值说明：Optional[DuplicateGroupDBModel] - 不存在时返回 None
        """
        row = BaseDBProcessor._execute(
            f"SELECT * FROM {_G.TABLE_NAME} WHERE {_G.COL_CONTENT_HASH} = ? AND {_G.COL_PENDING_DELETE} = 0 "
            f"ORDER BY {_G.COL_ID} DESC LIMIT 1",
            (content_hash,), is_query=True, fetch_one=True
        )
        if not row:
            return None
        return DuplicateGroupProcessor._attach_members([DuplicateGroupProcessor._to_group(row)])[0]

    @staticmethod
    def remove_members(group: DuplicateGroupDBModel, asset_ids: List[str]) -> None:
        """
        用途说明：从分组中移除已删除的成员并维护分组完整性。
        成员不足 2 个时整个分组被解散；否则按调用方重新计算好的字段更新分组。
        入参说明：
            group (DuplicateGroupDBModel): 已更新 members 及统计字段的分组对象
            asset_ids (List[str]): 被移除的附件 ID
        """
        with db_manager.transaction() as conn:
            cursor = conn.cursor()
            if asset_ids:
                cursor.execute(
                    f"DELETE FROM {_M.TABLE_NAME} WHERE {_M.COL_GROUP_ID} = ? "
                    f"AND {_M.COL_ASSET_ID} IN ({BaseDBProcessor._in_placeholders(asset_ids)})",
                    [group.id] + list(asset_ids)
                )

            if len(group.members) < 2:
                cursor.execute(f"DELETE FROM {_M.TABLE_NAME} WHERE {_M.COL_GROUP_ID} = ?", (group.id,))
                cursor.execute(f"DELETE FROM {_G.TABLE_NAME} WHERE {_G.COL_ID} = ?", (group.id,))
                LogUtils.info(f"重复组 {group.content_hash} 成员不足 2 个，已解散")
                return

            cursor.execute(
                f"UPDATE {_G.TABLE_NAME} SET {_G.COL_FILE_SIZE} = ?, {_G.COL_FILE_COUNT} = ?, "
                f"{_G.COL_SAVABLE_BYTES} = ?, {_G.COL_RECOMMENDED_KEEP_ID} = ? WHERE {_G.COL_ID} = ?",
                (group.file_size, group.file_count, group.savable_bytes, group.recommended_keep_id, group.id)
            )

    @staticmethod
    def get_group_count() -> int:
        res = BaseDBProcessor._execute(
            f"SELECT COUNT(*) AS total FROM {_G.TABLE_NAME} WHERE {_G.COL_PENDING_DELETE} = 0",
            is_query=True, fetch_one=True
        )
        return res['total'] if res else 0

    @staticmethod
    def clear_all_table() -> int:
        """用途：清空重复分组相关的两张表，返回删除的分组数。"""
        BaseDBProcessor._clear_table(_M.TABLE_NAME)
        return BaseDBProcessor._clear_table(_G.TABLE_NAME)
