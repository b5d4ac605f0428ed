import threading
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List


@dataclass
class FailedItem:
    """
    用途：批量处理中失败条目的记录。
    入参说明：
        asset_id (str) - 附件 ID
        display_name (str) - 附件显示名
        error (str) - 失败原因
    """
    asset_id: str = ""
    display_name: str = ""
    error: str = ""


@dataclass
class SkippedItem:
    """
    用途：批量处理中被跳过条目的记录。
    入参说明：
        asset_id (str) - 附件 ID
        display_name (str) - 附件显示名
        reason (str) - 跳过原因
    """
    asset_id: str = ""
    display_name: str = ""
    reason: str = ""


@dataclass
class ProgressSnapshot:
    """
    用途：TaskProgress 在某一时刻的只读快照，便于合并到持久化状态或直接返回给接口层。
    """
    total: int = 0
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    saved_bytes: int = 0
    kept_original_count: int = 0
    failed_items: List[FailedItem] = field(default_factory=list)
    skipped_items: List[SkippedItem] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class TaskProgress:
    """
    用途：单次扫描或批量任务的进度上下文。
    由发起任务的一方创建并显式传入流水线，所有计数操作都在锁内完成；
    任务结束时由持有者一次性把快照写入状态记录，期间不访问数据库。
    """

    def __init__(self, total: int = 0) -> None:
        """
        用途：初始化进度上下文。
        入参说明：total (int) - 条目总数，可稍后通过 set_total 调整
        """
        self._lock: threading.Lock = threading.Lock()
        self._total: int = total
        self._processed: int = 0
        self._succeeded: int = 0
        self._failed: int = 0
        self._skipped: int = 0
        self._saved_bytes: int = 0
        self._kept_original: int = 0
        self._failed_items: List[FailedItem] = []
        self._skipped_items: List[SkippedItem] = []
        self._cancel_requested: bool = False

    def set_total(self, total: int) -> None:
        with self._lock:
            self._total = total

    def advance(self, count: int = 1) -> int:
        """
        用途：仅推进已处理数（用于不区分成功/失败的扫描进度）。
        入参说明：count (int) - 推进的数量
        返回值说明：int - 推进后的已处理数
        """
        with self._lock:
            self._processed += count
            return self._processed

    def record_succeeded(self, saved_bytes: int = 0, kept_original: bool = False) -> None:
        """
        用途：记录一个成功条目。
        入参说明：
            saved_bytes (int) - 本条目节省的字节数
            kept_original (bool) - 是否保留了原文件
        """
        with self._lock:
            self._processed += 1
            self._succeeded += 1
            self._saved_bytes += saved_bytes
            if kept_original:
                self._kept_original += 1

    def record_failed(self, asset_id: str, display_name: str, error: str) -> None:
        """用途：记录一个失败条目及原因。"""
        with self._lock:
            self._processed += 1
            self._failed += 1
            self._failed_items.append(FailedItem(asset_id=asset_id, display_name=display_name, error=error))

    def record_skipped(self, asset_id: str, display_name: str, reason: str) -> None:
        """用途：记录一个跳过条目及原因。"""
        with self._lock:
            self._processed += 1
            self._skipped += 1
            self._skipped_items.append(SkippedItem(asset_id=asset_id, display_name=display_name, reason=reason))

    def request_cancel(self) -> None:
        """用途：设置协作式取消标志，已在执行的条目不受影响。"""
        with self._lock:
            self._cancel_requested = True

    def is_cancelled(self) -> bool:
        with self._lock:
            return self._cancel_requested

    def is_pristine(self) -> bool:
        """
        用途：判断计数器是否全部为零（用于识别服务重启后遗留的"活动"任务）。
        返回值说明：bool - total 与 processed 均为 0 时返回 True
        """
        with self._lock:
            return self._total == 0 and self._processed == 0

    def snapshot(self) -> ProgressSnapshot:
        """
        用途：获取当前计数的一致性快照。
        返回值说明：ProgressSnapshot - 列表字段为拷贝，可安全在锁外使用
        """
        with self._lock:
            return ProgressSnapshot(
                total=self._total,
                processed=self._processed,
                succeeded=self._succeeded,
                failed=self._failed,
                skipped=self._skipped,
                saved_bytes=self._saved_bytes,
                kept_original_count=self._kept_original,
                failed_items=list(self._failed_items),
                skipped_items=list(self._skipped_items)
            )
