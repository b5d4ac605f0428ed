class DBConstants:
    """
    用途：数据库表名、列名及状态取值常量，统一管理所有持久化相关的硬编码字符串
    """

    DB_VERSION: int = 2  # 版本 2：duplicate_members 增加 upload_time 列

    class ScanType:
        """用途：扫描类型（每种类型在 scan_status 表中对应一条单例记录）"""
        REFERENCE: str = 'reference'
        DUPLICATE: str = 'duplicate'
        BROKEN_LINK: str = 'broken_link'
        ALL: tuple = ('reference', 'duplicate', 'broken_link')

    class ScanPhase:
        """用途：扫描阶段取值"""
        IDLE: str = 'IDLE'
        SCANNING: str = 'SCANNING'
        COMPLETED: str = 'COMPLETED'
        ERROR: str = 'ERROR'

    class BatchPhase:
        """用途：批量处理任务阶段取值"""
        IDLE: str = 'IDLE'
        PENDING: str = 'PENDING'
        PROCESSING: str = 'PROCESSING'
        CANCELLING: str = 'CANCELLING'
        CANCELLED: str = 'CANCELLED'
        COMPLETED: str = 'COMPLETED'
        ERROR: str = 'ERROR'
        ACTIVE: tuple = ('PENDING', 'PROCESSING')

    class MatchMode:
        """用途：白名单匹配模式"""
        EXACT: str = 'exact'
        PREFIX: str = 'prefix'
        ALL: tuple = ('exact', 'prefix')

    class CleanupReason:
        """用途：清理日志中的删除原因"""
        DUPLICATE: str = 'DUPLICATE'
        UNREFERENCED: str = 'UNREFERENCED'

    class ProcessingStatus:
        """用途：处理日志中的单条结果"""
        SUCCEEDED: str = 'SUCCEEDED'
        FAILED: str = 'FAILED'
        SKIPPED: str = 'SKIPPED'
        PARTIAL: str = 'PARTIAL'

    class VersionInfo:
        """用途：version_info 表相关的常量"""
        TABLE_NAME: str = 'version_info'
        COL_VERSION: str = 'version'

    class ReferenceRecord:
        """用途：reference_records 表相关的常量"""
        TABLE_NAME: str = 'reference_records'
        COL_ID: str = 'id'
        COL_RECORD_KEY: str = 'record_key'
        COL_ASSET_ID: str = 'asset_id'
        COL_REFERENCE_COUNT: str = 'reference_count'
        COL_SOURCES: str = 'sources'
        COL_LAST_SCANNED_AT: str = 'last_scanned_at'
        COL_PENDING_DELETE: str = 'pending_delete'

    class BrokenLink:
        """用途：broken_links 表相关的常量"""
        TABLE_NAME: str = 'broken_links'
        COL_ID: str = 'id'
        COL_RECORD_KEY: str = 'record_key'
        COL_URL: str = 'url'
        COL_SOURCES: str = 'sources'
        COL_SOURCE_COUNT: str = 'source_count'
        COL_SOURCE_TYPES: str = 'source_types'
        COL_DISCOVERED_AT: str = 'discovered_at'
        COL_PENDING_DELETE: str = 'pending_delete'

    class DuplicateGroup:
        """用途：duplicate_groups 表相关的常量"""
        TABLE_NAME: str = 'duplicate_groups'
        COL_ID: str = 'id'
        COL_RECORD_KEY: str = 'record_key'
        COL_CONTENT_HASH: str = 'content_hash'
        COL_FILE_SIZE: str = 'file_size'
        COL_FILE_COUNT: str = 'file_count'
        COL_SAVABLE_BYTES: str = 'savable_bytes'
        COL_RECOMMENDED_KEEP_ID: str = 'recommended_keep_id'
        COL_PENDING_DELETE: str = 'pending_delete'
        COL_CREATE_TIME: str = 'create_time'

    class DuplicateMember:
        """用途：duplicate_members 表相关的常量"""
        TABLE_NAME: str = 'duplicate_members'
        COL_ID: str = 'id'
        COL_GROUP_ID: str = 'group_id'
        COL_ASSET_ID: str = 'asset_id'
        COL_DISPLAY_NAME: str = 'display_name'
        COL_SIZE: str = 'size'
        COL_UPLOAD_TIME: str = 'upload_time'
        COL_REFERENCE_COUNT: str = 'reference_count'
        COL_POSITION: str = 'position'

    class WhitelistEntry:
        """用途：whitelist_entries 表相关的常量"""
        TABLE_NAME: str = 'whitelist_entries'
        COL_ID: str = 'id'
        COL_URL_PATTERN: str = 'url_pattern'
        COL_MATCH_MODE: str = 'match_mode'
        COL_NOTE: str = 'note'
        COL_CREATED_AT: str = 'created_at'

    class ScanStatus:
        """用途：scan_status 表相关的常量（按 scan_type 单例）"""
        TABLE_NAME: str = 'scan_status'
        COL_SCAN_TYPE: str = 'scan_type'
        COL_PHASE: str = 'phase'
        COL_START_TIME: str = 'start_time'
        COL_LAST_SCAN_TIME: str = 'last_scan_time'
        COL_COUNTERS: str = 'counters'
        COL_ERROR_MESSAGE: str = 'error_message'
        COL_VERSION: str = 'version'

    class BatchStatus:
        """用途：batch_status 表相关的常量（全局只有一行，id 固定为 1）"""
        TABLE_NAME: str = 'batch_status'
        SINGLETON_ID: int = 1
        COL_ID: str = 'id'
        COL_TASK_ID: str = 'task_id'
        COL_PHASE: str = 'phase'
        COL_ASSET_IDS: str = 'asset_ids'
        COL_KEEP_ORIGINAL: str = 'keep_original'
        COL_TOTAL: str = 'total'
        COL_PROCESSED: str = 'processed'
        COL_SUCCEEDED: str = 'succeeded'
        COL_FAILED: str = 'failed'
        COL_SKIPPED: str = 'skipped'
        COL_FAILED_ITEMS: str = 'failed_items'
        COL_SKIPPED_ITEMS: str = 'skipped_items'
        COL_SAVED_BYTES: str = 'saved_bytes'
        COL_KEPT_ORIGINAL_COUNT: str = 'kept_original_count'
        COL_START_TIME: str = 'start_time'
        COL_END_TIME: str = 'end_time'
        COL_ERROR_MESSAGE: str = 'error_message'
        COL_VERSION: str = 'version'

    class CleanupLog:
        """用途：cleanup_logs 表相关的常量"""
        TABLE_NAME: str = 'cleanup_logs'
        COL_ID: str = 'id'
        COL_ASSET_ID: str = 'asset_id'
        COL_DISPLAY_NAME: str = 'display_name'
        COL_SIZE: str = 'size'
        COL_REASON: str = 'reason'
        COL_OPERATOR: str = 'operator'
        COL_DELETED_AT: str = 'deleted_at'
        COL_ERROR_MESSAGE: str = 'error_message'

    class ProcessingLog:
        """用途：processing_logs 表相关的常量"""
        TABLE_NAME: str = 'processing_logs'
        COL_ID: str = 'id'
        COL_TASK_ID: str = 'task_id'
        COL_ASSET_ID: str = 'asset_id'
        COL_ORIGINAL_FILENAME: str = 'original_filename'
        COL_RESULT_FILENAME: str = 'result_filename'
        COL_ORIGINAL_SIZE: str = 'original_size'
        COL_RESULT_SIZE: str = 'result_size'
        COL_STATUS: str = 'status'
        COL_MESSAGE: str = 'message'
        COL_PROCESSED_AT: str = 'processed_at'
