from dataclasses import dataclass, field
from typing import Dict, Optional

from storage_hygiene.db.db_constants import DBConstants


@dataclass
class ScanStatusDBModel:
    """
    用途：scan_status 表对应的数据库模型，每种扫描类型一条
    入参说明：
        scan_type (str): reference / duplicate / broken_link
        phase (str): IDLE / SCANNING / COMPLETED / ERROR
        start_time (Optional[str]): 本轮开始时间
        last_scan_time (Optional[str]): 最近一次完成时间
        counters (Dict[str, int]): 各扫描类型自己的统计值
        error_message (Optional[str]): 失败原因
        version (int): 乐观锁版本号
    """
    scan_type: str = ""
    phase: str = DBConstants.ScanPhase.IDLE
    start_time: Optional[str] = None
    last_scan_time: Optional[str] = None
    counters: Dict[str, int] = field(default_factory=dict)
    error_message: Optional[str] = None
    version: int = 0
