from typing import Optional

from storage_hygiene.db.processor.batch_status_processor import BatchStatusProcessor
from storage_hygiene.db.processor.broken_link_processor import BrokenLinkProcessor
from storage_hygiene.db.processor.cleanup_log_processor import CleanupLogProcessor
from storage_hygiene.db.processor.duplicate_group_processor import DuplicateGroupProcessor
from storage_hygiene.db.processor.processing_log_processor import ProcessingLogProcessor
from storage_hygiene.db.processor.reference_record_processor import ReferenceRecordProcessor
from storage_hygiene.db.processor.scan_status_processor import ScanStatusProcessor
from storage_hygiene.db.processor.whitelist_processor import WhitelistProcessor


class ProcessorManager:
    """
    用途：数据库处理器管理类，统一持有所有表的处理器对象
    """
    _instance: Optional['ProcessorManager'] = None

    def __new__(cls) -> 'ProcessorManager':
        if cls._instance is None:
            cls._instance = super(ProcessorManager, cls).__new__(cls)
        return cls._instance

    def __init__(self) -> None:
        """
        用途说明：初始化各处理器实例（仅执行一次）。
        """
        if getattr(self, '_initialized', False):
            return

        self.reference_record_processor: ReferenceRecordProcessor = ReferenceRecordProcessor()
        self.broken_link_processor: BrokenLinkProcessor = BrokenLinkProcessor()
        self.duplicate_group_processor: DuplicateGroupProcessor = DuplicateGroupProcessor()
        self.whitelist_processor: WhitelistProcessor = WhitelistProcessor()
        self.scan_status_processor: ScanStatusProcessor = ScanStatusProcessor()
        self.batch_status_processor: BatchStatusProcessor = BatchStatusProcessor()
        self.cleanup_log_processor: CleanupLogProcessor = CleanupLogProcessor()
        self.processing_log_processor: ProcessingLogProcessor = ProcessingLogProcessor()

        self._initialized: bool = True


# 全局唯一的处理器管理器实例
processor_manager: ProcessorManager = ProcessorManager()
