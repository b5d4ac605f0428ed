import os
import threading
from typing import Optional

from storage_hygiene.batch.batch_processing_service import BatchProcessingService
from storage_hygiene.common.log_utils import LogUtils
from storage_hygiene.common.utils import Utils
from storage_hygiene.duplicate.duplicate_service import DuplicateService
from storage_hygiene.reference.broken_link_service import BrokenLinkService
from storage_hygiene.reference.reference_service import ReferenceService
from storage_hygiene.source.content_source_registry import ContentSourceRegistry
from storage_hygiene.storage.base_asset_inventory import AssetInventory
from storage_hygiene.storage.local_asset_inventory import LocalAssetInventory
from storage_hygiene.transform.base_transformer import BaseTransformer
from storage_hygiene.transform.image_transformer import ImageTransformer


class ServiceManager:
    """
    用途：业务服务管理类（单例），统一持有附件清单、内容来源注册表、转换器以及各业务服务。
    首次访问时按默认实现装配，也可通过 configure 替换协作者（嵌入其它系统或测试时使用）。
    """
    _instance: Optional['ServiceManager'] = None
    _lock: threading.Lock = threading.Lock()

    # 默认的内容导出目录（相对运行目录）
    CONTENT_EXPORT_DIR: str = os.path.join("data", "content")

    def __new__(cls) -> 'ServiceManager':
        with cls._lock:
            if cls._instance is None:
                cls._instance = super(ServiceManager, cls).__new__(cls)
                cls._instance._configured = False
        return cls._instance

    def configure(self, inventory: Optional[AssetInventory] = None,
                  registry: Optional[ContentSourceRegistry] = None,
                  transformer: Optional[BaseTransformer] = None) -> 'ServiceManager':
        """
        用途说明：装配全部服务，未传入的协作者使用默认实现。
        入参说明：
            inventory (Optional[AssetInventory]): 附件清单，默认 LocalAssetInventory
            registry (Optional[ContentSourceRegistry]): 内容来源注册表，默认从 data/content 加载 JSON 导出
            transformer (Optional[BaseTransformer]): 批量处理转换器，默认 ImageTransformer
        返回值说明：ServiceManager - 自身，便于链式调用
        """
        if registry is None:
            registry = ContentSourceRegistry()
            registry.load_directory(os.path.join(Utils.get_runtime_path(), self.CONTENT_EXPORT_DIR))

        self.inventory: AssetInventory = inventory or LocalAssetInventory()
        self.registry: ContentSourceRegistry = registry
        self.transformer: BaseTransformer = transformer or ImageTransformer()

        self.reference_service: ReferenceService = ReferenceService(self.inventory, self.registry)
        self.broken_link_service: BrokenLinkService = BrokenLinkService(self.reference_service)
        self.duplicate_service: DuplicateService = DuplicateService(self.inventory)
        self.batch_processing_service: BatchProcessingService = BatchProcessingService(self.inventory, self.transformer)
        self._configured = True
        LogUtils.debug(f"业务服务装配完成，附件清单: {type(self.inventory).__name__}, 转换器: {type(self.transformer).__name__}")
        return self

    def ensure_configured(self) -> 'ServiceManager':
        with self._lock:
            if not self._configured:
                self.configure()
        return self


# 全局唯一的服务管理器实例
service_manager: ServiceManager = ServiceManager()


def get_services() -> ServiceManager:
    """用途说明：获取已装配的服务管理器（接口层使用）。"""
    return service_manager.ensure_configured()
