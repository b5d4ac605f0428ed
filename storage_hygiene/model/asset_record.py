from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class AssetRecord:
    """
    用途：附件清单中的单个附件（由外部附件存储维护，核心逻辑只读，删除/上传通过 AssetInventory 发起）
    入参说明：
        id (str): 附件唯一标识
        display_name (str): 显示名（通常为文件名）
        size (int): 字节数
        backend (str): 所在存储后端标识
        group (str): 所在存储分组，空字符串表示未分组
        access_url (Optional[str]): 可访问地址，可以是绝对地址或站内根相对路径
        media_type (str): MIME 类型
        upload_time (Optional[str]): 上传时间，格式 %Y-%m-%d %H:%M:%S，未知时为 None
        exists (bool): 是否仍然存在
    """
    id: str
    display_name: str = ""
    size: int = 0
    backend: str = ""
    group: str = ""
    access_url: Optional[str] = None
    media_type: str = ""
    upload_time: Optional[str] = None
    exists: bool = True


@dataclass
class AssetFilter:
    """
    用途：附件枚举过滤条件
    入参说明：
        backends (Optional[List[str]]): 仅保留这些后端，None 表示不限制
        exclude_groups (List[str]): 排除的分组
        exclude_backends (List[str]): 排除的后端
    """
    backends: Optional[List[str]] = None
    exclude_groups: List[str] = field(default_factory=list)
    exclude_backends: List[str] = field(default_factory=list)

    def accepts(self, asset: AssetRecord) -> bool:
        if self.backends is not None and asset.backend not in self.backends:
            return False
        if asset.backend in self.exclude_backends:
            return False
        if asset.group and asset.group in self.exclude_groups:
            return False
        return True
