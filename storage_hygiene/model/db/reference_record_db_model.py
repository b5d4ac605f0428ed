from dataclasses import dataclass, field
from typing import List, Optional

from storage_hygiene.model.source_ref import SourceRef


@dataclass
class ReferenceRecordDBModel:
    """
    用途：reference_records 表对应的数据库模型（每轮扫描每个附件一条，零引用也会生成）
    入参说明：
        id (Optional[int]): 主键
        record_key (str): 本轮扫描唯一键，形如 ref-<assetId>-<扫描时间戳>
        asset_id (str): 附件 ID
        reference_count (int): 引用次数（即 sources 的数量）
        sources (List[SourceRef]): 引用位置列表（已排序，便于比较两轮结果）
        last_scanned_at (Optional[str]): 扫描时间
        pending_delete (bool): 是否已被标记待删除
    """
    id: Optional[int] = None
    record_key: str = ""
    asset_id: str = ""
    reference_count: int = 0
    sources: List[SourceRef] = field(default_factory=list)
    last_scanned_at: Optional[str] = None
    pending_delete: bool = False
