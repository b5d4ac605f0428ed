import hashlib
import time
from contextlib import closing
from typing import Iterator, List

from storage_hygiene.common.exceptions import AssetTransferError
from storage_hygiene.model.asset_record import AssetRecord
from storage_hygiene.storage.base_asset_inventory import AssetInventory

# 建立连接的超时上限（秒），读取超时由调用方的整体超时决定
CONNECT_TIMEOUT_SECS: float = 10.0


class AssetDownloader:
    """
    用途：在整体超时约束下读取附件内容（流式计算摘要 / 完整下载）
    """

    @staticmethod
    def _stream(inventory: AssetInventory, asset: AssetRecord, timeout_seconds: float) -> Iterator[bytes]:
        connect_timeout: float = min(CONNECT_TIMEOUT_SECS, timeout_seconds)
        yield from inventory.open_stream(asset, (connect_timeout, timeout_seconds))

    @staticmethod
    def digest(inventory: AssetInventory, asset: AssetRecord, algorithm: str, timeout_seconds: float) -> str:
        """
        用途说明：流式计算附件内容摘要，不会把整个文件读入内存。
        入参说明：
            inventory (AssetInventory): 附件清单
            asset (AssetRecord): 附件
            algorithm (str): hashlib 支持的算法名，如 md5、sha256
            timeout_seconds (float): 单个附件的最长耗时
        返回值说明：str - 十六进制摘要
        异常说明：超时抛出 AssetTransferError；读取失败的异常原样抛出
        """
        hasher = hashlib.new(algorithm)
        deadline: float = time.monotonic() + timeout_seconds
        with closing(AssetDownloader._stream(inventory, asset, timeout_seconds)) as stream:
            for chunk in stream:
                hasher.update(chunk)
                if time.monotonic() > deadline:
                    raise AssetTransferError(f"计算摘要超时（{timeout_seconds} 秒）")
        return hasher.hexdigest()

    @staticmethod
    def download(inventory: AssetInventory, asset: AssetRecord, timeout_seconds: float) -> bytes:
        """
        用途说明：完整下载附件内容（批量处理需要把内容交给转换器）。
        入参说明：
            inventory (AssetInventory): 附件清单
            asset (AssetRecord): 附件
            timeout_seconds (float): 最长耗时
        返回值说明：bytes - 附件内容
        """
        chunks: List[bytes] = []
        deadline: float = time.monotonic() + timeout_seconds
        with closing(AssetDownloader._stream(inventory, asset, timeout_seconds)) as stream:
            for chunk in stream:
                chunks.append(chunk)
                if time.monotonic() > deadline:
                    raise AssetTransferError(f"下载超时（{timeout_seconds} 秒）")
        return b"".join(chunks)
