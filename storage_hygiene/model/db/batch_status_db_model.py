from dataclasses import dataclass, field
from typing import List, Optional

from storage_hygiene.common.progress_context import FailedItem, ProgressSnapshot, SkippedItem
from storage_hygiene.db.db_constants import DBConstants


@dataclass
class BatchStatusDBModel:
    """
    用途：batch_status 表对应的数据库模型（全局单例，同一时间只允许一个批量任务处于活动状态）
    入参说明：
        task_id (Optional[str]): 任务编号，形如 20240101_120000
        phase (str): 任务阶段，见 DBConstants.BatchPhase
        asset_ids (List[str]): 待处理附件列表
        keep_original (bool): 是否保留原文件
        total / processed / succeeded / failed / skipped (int): 计数
        failed_items (List[FailedItem]): 失败明细
        skipped_items (List[SkippedItem]): 跳过明细
        saved_bytes (int): 累计节省字节数
        kept_original_count (int): 保留原文件的条目数
        start_time / end_time (Optional[str]): 起止时间
        error_message (Optional[str]): 任务级错误
        version (int): 乐观锁版本号
    """
    task_id: Optional[str] = None
    phase: str = DBConstants.BatchPhase.IDLE
    asset_ids: List[str] = field(default_factory=list)
    keep_original: bool = False
    total: int = 0
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    failed_items: List[FailedItem] = field(default_factory=list)
    skipped_items: List[SkippedItem] = field(default_factory=list)
    saved_bytes: int = 0
    kept_original_count: int = 0
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    error_message: Optional[str] = None
    version: int = 0

    def apply_snapshot(self, snapshot: ProgressSnapshot) -> None:
        """
        用途：将内存中的进度快照合并到状态对象上（不落库）
        入参说明：snapshot (ProgressSnapshot) - TaskProgress.snapshot() 的结果
        """
        self.total = snapshot.total
        self.processed = snapshot.processed
        self.succeeded = snapshot.succeeded
        self.failed = snapshot.failed
        self.skipped = snapshot.skipped
        self.failed_items = snapshot.failed_items
        self.skipped_items = snapshot.skipped_items
        self.saved_bytes = snapshot.saved_bytes
        self.kept_original_count = snapshot.kept_original_count
