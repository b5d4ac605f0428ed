import threading
from typing import Dict, List, Optional, Tuple

from storage_hygiene.model.asset_record import AssetRecord
from storage_hygiene.model.db.duplicate_group_db_model import DuplicateGroupDBModel, DuplicateMemberDBModel


class Md5Checker:
    """
    用途：内容摘要查重检查器。先录入每个附件的摘要，再按摘要分组，
    只为成员数 >= 2 的摘要生成重复组。录入可在多个线程中并发进行。
    """

    def __init__(self) -> None:
        self._lock: threading.Lock = threading.Lock()
        self._hash_to_members: Dict[str, List[DuplicateMemberDBModel]] = {}

    def add_file(self, digest: str, asset: AssetRecord, position: int) -> None:
        """
        用途：录入一个附件的摘要
        入参说明：
            digest (str): 内容摘要
            asset (AssetRecord): 附件
            position (int): 附件在清单中的枚举序号，用于组内稳定排序
        """
        member: DuplicateMemberDBModel = DuplicateMemberDBModel(
            asset_id=asset.id,
            display_name=asset.display_name,
            size=asset.size,
            upload_time=asset.upload_time,
            reference_count=0,
            position=position
        )
        with self._lock:
            self._hash_to_members.setdefault(digest, []).append(member)

    def duplicate_asset_ids(self) -> List[str]:
        """用途：返回所有位于重复组中的附件 ID（用于批量查询引用次数）。"""
        with self._lock:
            return [m.asset_id for members in self._hash_to_members.values() if len(members) > 1 for m in members]

    def get_results(self, reference_counts: Dict[str, int], pass_stamp: str,
                    create_time: str) -> List[DuplicateGroupDBModel]:
        """
        用途：按摘要生成重复组
        入参说明：
            reference_counts (Dict[str, int]): 附件 ID -> 引用次数，缺失视为 0
            pass_stamp (str): 本轮扫描时间戳，用于生成唯一键
            create_time (str): 创建时间
        返回值说明：List[DuplicateGroupDBModel] - 按摘要排序
        """
        with self._lock:
            snapshot: Dict[str, List[DuplicateMemberDBModel]] = {
                digest: list(members) for digest, members in self._hash_to_members.items() if len(members) > 1
            }

        groups: List[DuplicateGroupDBModel] = []
        for digest in sorted(snapshot):
            members: List[DuplicateMemberDBModel] = sorted(snapshot[digest], key=lambda m: m.position)
            for member in members:
                member.reference_count = reference_counts.get(member.asset_id, 0)
            group: DuplicateGroupDBModel = DuplicateGroupDBModel(
                record_key=f"dup-{digest[:8]}-{pass_stamp}",
                content_hash=digest,
                create_time=create_time,
                members=members
            )
            Md5Checker.refresh_group_stats(group)
            groups.append(group)
        return groups

    @staticmethod
    def refresh_group_stats(group: DuplicateGroupDBModel) -> None:
        """
        用途：根据当前成员重新计算文件大小、数量、可节省空间与建议保留文件
        入参说明：group (DuplicateGroupDBModel) - 重复组（原地修改）
        """
        members: List[DuplicateMemberDBModel] = group.members
        group.file_size = members[0].size if members else 0
        group.file_count = len(members)
        group.savable_bytes = group.file_size * max(0, len(members) - 1)
        group.recommended_keep_id = Md5Checker.select_recommended_keep(members)

    @staticmethod
    def select_recommended_keep(members: List[DuplicateMemberDBModel]) -> Optional[str]:
        """
        用途：选择建议保留的文件：引用次数最多者优先；相同时选上传时间最早的（没有上传时间的排在后面）；
        仍相同则取组内最先出现的成员
        入参说明：members (List[DuplicateMemberDBModel]) - 已按 position 排序的成员
        返回值说明：Optional[str] - 附件 ID，成员为空时返回 None
        """
        if not members:
            return None

        def rank(member: DuplicateMemberDBModel) -> Tuple[int, int, str, int]:
            has_time: bool = bool(member.upload_time)
            return -member.reference_count, 0 if has_time else 1, member.upload_time or "", member.position

        return min(members, key=rank).asset_id
