from dataclasses import dataclass, field
from typing import Any, Dict, List


@dataclass
class SiteSettings:
    """
    用途：站点基础信息配置数据类
    external_base_url 用于把站内根相对路径（/upload/...）补全为绝对地址
    """
    external_base_url: str = ""


@dataclass
class ContentScanSettings:
    """
    用途：引用扫描时各内容来源的开关（配置项与用户头像始终扫描，不受开关控制）
    """
    scan_posts: bool = True
    scan_pages: bool = True
    scan_comments: bool = False
    scan_moments: bool = False
    scan_photos: bool = False
    scan_docs: bool = False


@dataclass
class ExcludeSettings:
    """
    用途：扫描时需要排除的存储分组与存储后端
    """
    exclude_groups: List[str] = field(default_factory=list)
    exclude_backends: List[str] = field(default_factory=list)


@dataclass
class ScanSettings:
    """
    用途：扫描通用参数（卡死判定、查重并发、单文件哈希超时等）
    """
    scan_timeout_minutes: int = 5
    duplicate_scan_concurrency: int = 4
    hash_timeout_seconds: int = 90
    hash_algorithm: str = "md5"
    remote_storage_for_duplicate_scan: bool = False


@dataclass
class BatchProcessingSettings:
    """
    用途：批量处理（图片重新压缩 / 格式转换）相关配置数据类
    """
    keep_original_file: bool = False
    remote_storage_for_batch_processing: bool = False
    processing_concurrency: int = 2
    download_timeout_seconds: int = 60
    allowed_media_types: List[str] = field(default_factory=lambda: ["image/jpeg", "image/png", "image/webp"])
    min_size_kb: int = 0
    format_conversion_enabled: bool = True
    target_format: str = "webp"
    quality: int = 80
    resize_enabled: bool = False
    max_width: int = 1920
    max_height: int = 1920


@dataclass
class StorageSettings:
    """
    用途：本地附件目录配置。
    backends 中每项形如 {"name": "local", "root": "/data/upload", "url_prefix": "/upload", "local": true}
    """
    backends: List[Dict[str, Any]] = field(default_factory=list)


@dataclass
class LogSettings:
    """
    用途：处理日志 / 清理日志的保留策略
    """
    log_retention_days: int = 30
    log_cleanup_time: str = "02:00"


@dataclass
class SystemSettings:
    """
    用途：系统级开关
    """
    debug_api_enabled: bool = True


@dataclass
class AppConfig:
    """
    用途：系统全局配置汇总数据类
    """
    site: SiteSettings = field(default_factory=SiteSettings)
    content_scan: ContentScanSettings = field(default_factory=ContentScanSettings)
    exclude: ExcludeSettings = field(default_factory=ExcludeSettings)
    scan: ScanSettings = field(default_factory=ScanSettings)
    batch_processing: BatchProcessingSettings = field(default_factory=BatchProcessingSettings)
    storage: StorageSettings = field(default_factory=StorageSettings)
    log: LogSettings = field(default_factory=LogSettings)
    system: SystemSettings = field(default_factory=SystemSettings)
