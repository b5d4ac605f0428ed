from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional, Tuple, Union

import requests

from storage_hygiene.common.exceptions import AssetTransferError
from storage_hygiene.common.utils import Utils
from storage_hygiene.model.asset_record import AssetFilter, AssetRecord
from storage_hygiene.setting.setting_service import settingService

# requests 的超时参数：单个数字或 (连接超时, 读取超时)
Timeout = Union[float, Tuple[float, float]]


@dataclass
class StorageBackend:
    """
    用途：存储后端描述
    入参说明：
        name (str): 后端标识，对应 AssetRecord.backend
        local (bool): 是否为本地存储；非本地后端（对象存储等）需要配置开关才参与查重和批量处理
    """
    name: str
    local: bool = True


class AssetInventory(ABC):
    """
    用途说明：附件清单接口。核心逻辑只通过这里读取附件、删除附件、上传处理结果以及读取附件内容。
    """

    CHUNK_SIZE: int = 64 * 1024

    @abstractmethod
    def list_all(self, asset_filter: Optional[AssetFilter] = None) -> Iterable[AssetRecord]:
        """
        用途说明：按过滤条件枚举附件，顺序需稳定（同样的存储内容每次枚举顺序一致）。
        入参说明：asset_filter (Optional[AssetFilter]) - 过滤条件，None 表示不过滤
        """

    @abstractmethod
    def fetch(self, asset_id: str) -> Optional[AssetRecord]:
        """用途说明：按 ID 获取附件，不存在时返回 None。"""

    @abstractmethod
    def delete(self, asset_id: str) -> None:
        """
        用途说明：删除附件。
        异常说明：附件不存在或删除失败时抛出异常，由调用方记录到对应条目
        """

    @abstractmethod
    def upload(self, backend: str, group: str, filename: str, data: bytes, media_type: str) -> AssetRecord:
        """
        用途说明：上传新附件。
        返回值说明：AssetRecord - 新附件
        """

    @abstractmethod
    def list_backends(self) -> List[StorageBackend]:
        """用途说明：列出全部存储后端。"""

    def is_local_backend(self, backend: str) -> bool:
        return any(b.name == backend and b.local for b in self.list_backends())

    def open_stream(self, asset: AssetRecord, timeout: Timeout) -> Iterator[bytes]:
        """
        用途说明：以分块方式读取附件内容，默认通过 HTTP 流式下载访问地址。
        站内相对地址会先补全为站点外部访问地址。
        入参说明：
            asset (AssetRecord): 附件
            timeout (Timeout): 连接/读取超时秒数
        返回值说明：Iterator[bytes] - 内容分块
        异常说明：没有可下载地址或请求失败时抛出 AssetTransferError
        """
        if not asset.access_url:
            raise AssetTransferError("附件没有可访问地址")
        url: str = Utils.join_base_url(settingService.get_config().site.external_base_url, asset.access_url)
        if not url.startswith(("http://", "https://")):
            raise AssetTransferError(f"无法下载站内地址，请先配置站点外部访问地址: {asset.access_url}")

        try:
            with requests.get(url, stream=True, timeout=timeout) as response:
                response.raise_for_status()
                for chunk in response.iter_content(self.CHUNK_SIZE):
                    if chunk:
                        yield chunk
        except requests.RequestException as e:
            raise AssetTransferError(f"下载失败: {e}")
