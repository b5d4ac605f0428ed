from dataclasses import dataclass, field
from typing import List, Optional

from storage_hygiene.model.db.duplicate_group_db_model import DuplicateGroupDBModel


@dataclass
class DuplicateMemberItem:
    """
    用途：重复组成员视图，附带附件当前的访问地址与最新引用次数（-1 表示尚未完成过引用扫描）
    """
    asset_id: str
    display_name: str = ""
    size: int = 0
    upload_time: Optional[str] = None
    access_url: Optional[str] = None
    media_type: str = ""
    exists: bool = True
    reference_count: int = -1
    recommended_keep: bool = False


@dataclass
class DuplicateGroupItem:
    """
    用途：重复组列表接口返回的视图对象
    """
    content_hash: str
    file_size: int = 0
    file_count: int = 0
    savable_bytes: int = 0
    recommended_keep_id: Optional[str] = None
    create_time: Optional[str] = None
    members: List[DuplicateMemberItem] = field(default_factory=list)

    @staticmethod
    def from_group(group: DuplicateGroupDBModel) -> 'DuplicateGroupItem':
        return DuplicateGroupItem(
            content_hash=group.content_hash,
            file_size=group.file_size,
            file_count=group.file_count,
            savable_bytes=group.savable_bytes,
            recommended_keep_id=group.recommended_keep_id,
            create_time=group.create_time
        )
