from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional, Tuple


@dataclass(frozen=True)
class SourceRef:
    """
    用途：描述一次引用出现的位置（来自哪类内容、哪条内容、以何种方式引用）。
    每轮扫描重新生成，不可变，可直接放入 set 去重。
    入参说明：
        source_type (str): 内容类型，如 Post、SinglePage、Comment、SystemSetting
        source_id (str): 内容唯一标识
        title (Optional[str]): 内容标题
        navigable_url (Optional[str]): 可跳转的访问地址
        is_in_recycle_bin (bool): 内容是否位于回收站
        reference_kind (str): 引用方式，如 cover、content、media、icon、avatar
        owner_setting_id (Optional[str]): 当来源为配置项时，所属配置的名称
    """
    source_type: str
    source_id: str
    title: Optional[str] = None
    navigable_url: Optional[str] = None
    is_in_recycle_bin: bool = False
    reference_kind: str = "content"
    owner_setting_id: Optional[str] = None

    def sort_key(self) -> Tuple[str, str, str, str]:
        return (self.source_type, self.source_id, self.reference_kind, self.owner_setting_id or "")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> 'SourceRef':
        return SourceRef(
            source_type=data.get("source_type", ""),
            source_id=data.get("source_id", ""),
            title=data.get("title"),
            navigable_url=data.get("navigable_url"),
            is_in_recycle_bin=bool(data.get("is_in_recycle_bin", False)),
            reference_kind=data.get("reference_kind", "content"),
            owner_setting_id=data.get("owner_setting_id")
        )
