import mimetypes
import os
import threading
from datetime import datetime
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple
from urllib.parse import quote

from storage_hygiene.common.exceptions import ValidationError
from storage_hygiene.common.log_utils import LogUtils
from storage_hygiene.common.utils import Utils
from storage_hygiene.model.asset_record import AssetFilter, AssetRecord
from storage_hygiene.setting.setting_service import settingService
from storage_hygiene.storage.base_asset_inventory import AssetInventory, StorageBackend, Timeout


class LocalAssetInventory(AssetInventory):
    """
    用途说明：基于目录的附件清单，后端来自配置 STORAGE.backends：
        {"name": "local", "root": "/data/upload", "url_prefix": "/upload", "local": true}
    附件 ID 形如 "<后端名>:<相对路径>"，第一级子目录作为存储分组。
    本地后端直接读取磁盘内容；非本地后端（目录仅为镜像）通过访问地址下载。
    """

    ID_SEPARATOR: str = ":"

    def __init__(self, backends: Optional[List[Dict[str, Any]]] = None) -> None:
        """
        入参说明：backends (Optional[List[Dict]]) - 指定后端配置；为空时每次从 settingService 读取
        """
        self._backends: Optional[List[Dict[str, Any]]] = backends
        self._upload_lock: threading.Lock = threading.Lock()

    # ------------------------------------------------------------------ 后端

    def _backend_configs(self) -> List[Dict[str, Any]]:
        if self._backends is not None:
            return self._backends
        return settingService.get_config().storage.backends

    def _get_backend_config(self, name: str) -> Optional[Dict[str, Any]]:
        for config in self._backend_configs():
            if config.get("name") == name:
                return config
        return None

    def list_backends(self) -> List[StorageBackend]:
        return [StorageBackend(name=c.get("name", ""), local=bool(c.get("local", True)))
                for c in self._backend_configs() if c.get("name")]

    # ------------------------------------------------------------------ 枚举

    def list_all(self, asset_filter: Optional[AssetFilter] = None) -> Iterable[AssetRecord]:
        for config in self._backend_configs():
            root: str = config.get("root") or ""
            if not root or not os.path.isdir(root):
                LogUtils.debug(f"存储后端目录不存在，跳过: {config.get('name')} -> {root}")
                continue
            for dir_path, dir_names, file_names in os.walk(root):
                # 保证枚举顺序稳定
                dir_names.sort()
                for file_name in sorted(file_names):
                    rel_path: str = os.path.relpath(os.path.join(dir_path, file_name), root).replace(os.sep, "/")
                    asset: Optional[AssetRecord] = self._build_record(config, rel_path)
                    if asset is None:
                        continue
                    if asset_filter is None or asset_filter.accepts(asset):
                        yield asset

    def _build_record(self, config: Dict[str, Any], rel_path: str) -> Optional[AssetRecord]:
        full_path: str = os.path.join(config["root"], rel_path)
        try:
            stat = os.stat(full_path)
        except OSError:
            return None
        group: str = rel_path.split("/", 1)[0] if "/" in rel_path else ""
        media_type, _ = mimetypes.guess_type(rel_path)
        url_prefix: str = (config.get("url_prefix") or "").rstrip("/")
        return AssetRecord(
            id=f"{config['name']}{self.ID_SEPARATOR}{rel_path}",
            display_name=os.path.basename(rel_path),
            size=stat.st_size,
            backend=config["name"],
            group=group,
            access_url=f"{url_prefix}/{quote(rel_path)}",
            media_type=media_type or "application/octet-stream",
            upload_time=datetime.fromtimestamp(stat.st_mtime).strftime(Utils.TIME_FORMAT),
            exists=True
        )

    def _resolve(self, asset_id: str) -> Tuple[Dict[str, Any], str, str]:
        """
        用途说明：把附件 ID 解析为 (后端配置, 相对路径, 绝对路径)。
        异常说明：ID 格式错误、后端不存在或路径越界时抛出 ValidationError
        """
        backend, sep, rel_path = asset_id.partition(self.ID_SEPARATOR)
        config: Optional[Dict[str, Any]] = self._get_backend_config(backend) if sep else None
        if config is None or not config.get("root"):
            raise ValidationError(f"附件 ID 无效: {asset_id}")
        root: str = os.path.abspath(config["root"])
        full_path: str = os.path.abspath(os.path.join(root, rel_path))
        if os.path.commonpath([root, full_path]) != root:
            raise ValidationError(f"附件 ID 无效: {asset_id}")
        return config, rel_path, full_path

    # ------------------------------------------------------------------ 单个附件

    def fetch(self, asset_id: str) -> Optional[AssetRecord]:
        try:
            config, rel_path, full_path = self._resolve(asset_id)
        except ValidationError:
            return None
        if not os.path.isfile(full_path):
            return None
        return self._build_record(config, rel_path)

    def delete(self, asset_id: str) -> None:
        _, _, full_path = self._resolve(asset_id)
        if not os.path.isfile(full_path):
            raise ValidationError("文件不存在或已删除")
        os.remove(full_path)
        LogUtils.info(f"已删除附件文件: {full_path}")

    def upload(self, backend: str, group: str, filename: str, data: bytes, media_type: str) -> AssetRecord:
        """
        用途说明：把内容写入指定后端与分组目录；同名文件存在时自动追加序号。
        返回值说明：AssetRecord - 新附件
        """
        config: Optional[Dict[str, Any]] = self._get_backend_config(backend)
        if config is None or not config.get("root"):
            raise ValidationError(f"存储后端不存在: {backend}")

        target_dir: str = os.path.join(config["root"], group) if group else config["root"]
        with self._upload_lock:
            os.makedirs(target_dir, exist_ok=True)
            stem, ext = os.path.splitext(filename)
            candidate: str = filename
            index: int = 1
            while os.path.exists(os.path.join(target_dir, candidate)):
                candidate = f"{stem}_{index}{ext}"
                index += 1
            with open(os.path.join(target_dir, candidate), "wb") as f:
                f.write(data)

        rel_path: str = f"{group}/{candidate}" if group else candidate
        record: Optional[AssetRecord] = self._build_record(config, rel_path)
        record.media_type = media_type or record.media_type
        return record

    def open_stream(self, asset: AssetRecord, timeout: Timeout) -> Iterator[bytes]:
        config: Optional[Dict[str, Any]] = self._get_backend_config(asset.backend)
        if config is None or not bool(config.get("local", True)):
            yield from super().open_stream(asset, timeout)
            return

        _, _, full_path = self._resolve(asset.id)
        with open(full_path, "rb") as f:
            for chunk in iter(lambda: f.read(self.CHUNK_SIZE), b""):
                yield chunk
