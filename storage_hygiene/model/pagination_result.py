from dataclasses import asdict, dataclass, is_dataclass
from typing import Any, Dict, Generic, List, TypeVar

T = TypeVar('T')


@dataclass
class PaginationResult(Generic[T]):
    """
    用途：分页查询结果，list 中的元素为各业务模型（dataclass）。
    """
    total: int
    list: List[T]
    page: int
    limit: int
    sort_by: str = ""
    order: str = "DESC"

    def to_dict(self) -> Dict[str, Any]:
        """
        用途：转换为可直接 jsonify 的字典，dataclass 元素会被展开。
        返回值说明：Dict[str, Any]
        """
        return {
            "total": self.total,
            "list": [asdict(item) if is_dataclass(item) else item for item in self.list],
            "page": self.page,
            "limit": self.limit,
            "sort_by": self.sort_by,
            "order": self.order
        }
