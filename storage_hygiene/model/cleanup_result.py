from dataclasses import dataclass, field
from typing import List


@dataclass
class CleanupResult:
    """
    用途：批量删除附件（未引用文件 / 重复文件）的结果汇总
    入参说明：
        deleted_count (int): 删除成功数量
        failed_count (int): 删除失败数量
        freed_size (int): 释放的字节数
        errors (List[str]): 失败明细，格式为 "<附件 ID>: <原因>"
    """
    deleted_count: int = 0
    failed_count: int = 0
    freed_size: int = 0
    errors: List[str] = field(default_factory=list)
