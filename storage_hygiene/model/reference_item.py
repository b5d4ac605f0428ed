from dataclasses import dataclass, field
from typing import List, Optional

from storage_hygiene.model.asset_record import AssetRecord
from storage_hygiene.model.db.reference_record_db_model import ReferenceRecordDBModel
from storage_hygiene.model.source_ref import SourceRef


@dataclass
class ReferenceItem:
    """
    用途：引用列表 / 详情接口返回的视图对象，合并附件信息与最近一轮的引用记录。
    reference_count 为 -1 表示该附件尚未被扫描过。
    """
    asset_id: str
    display_name: str = ""
    size: int = 0
    backend: str = ""
    group: str = ""
    access_url: Optional[str] = None
    media_type: str = ""
    upload_time: Optional[str] = None
    reference_count: int = -1
    sources: List[SourceRef] = field(default_factory=list)
    last_scanned_at: Optional[str] = None

    @staticmethod
    def build(asset: AssetRecord, record: Optional[ReferenceRecordDBModel]) -> 'ReferenceItem':
        item: ReferenceItem = ReferenceItem(
            asset_id=asset.id,
            display_name=asset.display_name,
            size=asset.size,
            backend=asset.backend,
            group=asset.group,
            access_url=asset.access_url,
            media_type=asset.media_type,
            upload_time=asset.upload_time
        )
        if record is not None:
            item.reference_count = record.reference_count
            item.sources = list(record.sources)
            item.last_scanned_at = record.last_scanned_at
        return item
