from dataclasses import dataclass, field
from typing import List, Optional

from storage_hygiene.model.source_ref import SourceRef


@dataclass
class BrokenLinkDBModel:
    """
    用途：broken_links 表对应的数据库模型，每个未解析的 URL 一条，聚合其所有出现位置
    入参说明：
        id (Optional[int]): 主键
        record_key (str): 唯一键，形如 broken-link-<扫描时间戳>-<序号>
        url (str): 失效链接（绝对地址或站内路径）
        sources (List[SourceRef]): 引用该链接的位置
        source_count (int): 引用位置数量
        discovered_at (Optional[str]): 发现时间
        pending_delete (bool): 是否已被标记待删除
    """
    id: Optional[int] = None
    record_key: str = ""
    url: str = ""
    sources: List[SourceRef] = field(default_factory=list)
    source_count: int = 0
    discovered_at: Optional[str] = None
    pending_delete: bool = False
