from dataclasses import dataclass
from typing import Optional


@dataclass
class CleanupLogDBModel:
    """
    用途：cleanup_logs 表对应的数据库模型，每次删除附件（成功或失败）记录一条
    入参说明：
        id (Optional[int]): 主键
        asset_id (str): 附件 ID
        display_name (str): 附件显示名
        size (int): 字节数
        reason (str): DUPLICATE / UNREFERENCED
        operator (str): 操作人
        deleted_at (Optional[str]): 删除时间
        error_message (Optional[str]): 删除失败时的原因
    """
    id: Optional[int] = None
    asset_id: str = ""
    display_name: str = ""
    size: int = 0
    reason: str = ""
    operator: str = "system"
    deleted_at: Optional[str] = None
    error_message: Optional[str] = None
