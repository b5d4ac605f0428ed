from dataclasses import dataclass
from typing import Optional


@dataclass
class ProcessingLogDBModel:
    """
    用途：processing_logs 表对应的数据库模型，批量处理中每个附件记录一条
    """
    id: Optional[int] = None
    task_id: Optional[str] = None
    asset_id: str = ""
    original_filename: str = ""
    result_filename: Optional[str] = None
    original_size: int = 0
    result_size: int = 0
    status: str = ""
    message: Optional[str] = None
    processed_at: Optional[str] = None
