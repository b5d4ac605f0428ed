from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class DuplicateMemberDBModel:
    """
    用途：duplicate_members 表对应的数据库模型
    入参说明：
        id (Optional[int]): 主键
        group_id (Optional[int]): 所属重复组 ID
        asset_id (str): 附件 ID
        display_name (str): 附件显示名
        size (int): 字节数
        upload_time (Optional[str]): 上传时间
        reference_count (int): 扫描时的引用次数
        position (int): 组内顺序（即附件枚举顺序）
    """
    id: Optional[int] = None
    group_id: Optional[int] = None
    asset_id: str = ""
    display_name: str = ""
    size: int = 0
    upload_time: Optional[str] = None
    reference_count: int = 0
    position: int = 0


@dataclass
class DuplicateGroupDBModel:
    """
    用途：duplicate_groups 表对应的数据库模型（仅为成员数 >= 2 的哈希创建）
    入参说明：
        id (Optional[int]): 主键
        record_key (str): 唯一键，形如 dup-<哈希前 8 位>-<扫描时间戳>
        content_hash (str): 内容摘要
        file_size (int): 单个文件大小（取第一个成员）
        file_count (int): 成员数量
        savable_bytes (int): 可节省空间 = file_size * (file_count - 1)
        recommended_keep_id (Optional[str]): 建议保留的附件 ID
        pending_delete (bool): 是否已被标记待删除
        create_time (Optional[str]): 创建时间
        members (List[DuplicateMemberDBModel]): 成员列表
    """
    id: Optional[int] = None
    record_key: str = ""
    content_hash: str = ""
    file_size: int = 0
    file_count: int = 0
    savable_bytes: int = 0
    recommended_keep_id: Optional[str] = None
    pending_delete: bool = False
    create_time: Optional[str] = None
    members: List[DuplicateMemberDBModel] = field(default_factory=list)

    @property
    def member_asset_ids(self) -> List[str]:
        return [m.asset_id for m in self.members]
