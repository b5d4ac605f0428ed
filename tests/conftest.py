"""
测试公共配置：运行目录指向临时目录，每个用例使用独立的 sqlite 文件与默认配置。
"""
import os
import tempfile

# 必须在导入 storage_hygiene 之前设置，保证配置文件与日志写入临时目录
os.environ.setdefault("STORAGE_HYGIENE_RUNTIME_PATH", tempfile.mkdtemp(prefix="storage_hygiene_test_"))

import threading
import time
from typing import Dict, Iterable, Iterator, List, Optional, Set

import pytest

from storage_hygiene.common.exceptions import AssetTransferError, ValidationError
from storage_hygiene.db.db_manager import DBManager, db_manager
from storage_hygiene.model.asset_record import AssetFilter, AssetRecord
from storage_hygiene.setting.setting_service import settingService
from storage_hygiene.source.content_source_registry import ContentSourceRegistry
from storage_hygiene.storage.base_asset_inventory import AssetInventory, StorageBackend, Timeout


class FakeInventory(AssetInventory):
    """内存附件清单：内容直接保存在字典中。"""

    def __init__(self, backends: Optional[List[StorageBackend]] = None) -> None:
        self.backends: List[StorageBackend] = backends or [StorageBackend("local", True)]
        self.assets: Dict[str, AssetRecord] = {}
        self.contents: Dict[str, bytes] = {}
        self.broken: Set[str] = set()
        self.undeletable: Set[str] = set()
        self.slow: Set[str] = set()
        self.deleted: List[str] = []
        self.uploaded: List[AssetRecord] = []
        self._lock = threading.Lock()

    def add(self, asset_id: str, data: bytes = b"", display_name: Optional[str] = None, backend: str = "local",
            group: str = "", access_url: Optional[str] = None, media_type: str = "image/png",
            upload_time: Optional[str] = None) -> AssetRecord:
        asset = AssetRecord(
            id=asset_id,
            display_name=display_name or asset_id,
            size=len(data),
            backend=backend,
            group=group,
            access_url=access_url if access_url is not None else f"/upload/{asset_id}",
            media_type=media_type,
            upload_time=upload_time
        )
        self.assets[asset_id] = asset
        self.contents[asset_id] = data
        return asset

    def list_all(self, asset_filter: Optional[AssetFilter] = None) -> Iterable[AssetRecord]:
        return [a for a in list(self.assets.values()) if asset_filter is None or asset_filter.accepts(a)]

    def fetch(self, asset_id: str) -> Optional[AssetRecord]:
        return self.assets.get(asset_id)

    def delete(self, asset_id: str) -> None:
        if asset_id in self.undeletable:
            raise OSError("permission denied")
        with self._lock:
            if self.assets.pop(asset_id, None) is None:
                raise ValidationError("文件不存在或已删除")
            self.contents.pop(asset_id, None)
            self.deleted.append(asset_id)

    def upload(self, backend: str, group: str, filename: str, data: bytes, media_type: str) -> AssetRecord:
        with self._lock:
            asset_id = f"uploaded-{len(self.uploaded) + 1}-{filename}"
            asset = self.add(asset_id, data, filename, backend, group, media_type=media_type)
            self.uploaded.append(asset)
            return asset

    def list_backends(self) -> List[StorageBackend]:
        return list(self.backends)

    def open_stream(self, asset: AssetRecord, timeout: Timeout) -> Iterator[bytes]:
        if asset.id in self.broken:
            raise AssetTransferError("下载失败")
        data = self.contents[asset.id]
        for i in range(0, len(data), 16):
            if asset.id in self.slow:
                time.sleep(0.05)
            yield data[i:i + 16]


@pytest.fixture(autouse=True)
def isolated_db(tmp_path):
    """每个用例使用独立的数据库文件，并恢复默认配置。"""
    DBManager.set_db_path(str(tmp_path / "storage_hygiene.db"))
    db_manager.init_db()
    settingService.reset()
    yield
    settingService.reset()


@pytest.fixture
def inventory() -> FakeInventory:
    return FakeInventory()


@pytest.fixture
def registry() -> ContentSourceRegistry:
    return ContentSourceRegistry()
