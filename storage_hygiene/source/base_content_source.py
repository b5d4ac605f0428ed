from abc import ABC, abstractmethod
from typing import Iterable, List, Optional

from storage_hygiene.model.content_item import ContentItem


class ContentSource(ABC):
    """
    用途说明：内容来源适配器基类。每个适配器负责一种内容类型（文章、页面、评论、配置等），
    只需按顺序产出 ContentItem，URL 提取与引用归集由 ContentCollector 完成。
    """

    def __init__(self, content_kind: str, source_type: str) -> None:
        """
        入参说明：
            content_kind (str): 内容类别，见 ContentKind
            source_type (str): 写入 SourceRef 的来源类型名称，如 Post、SinglePage
        """
        self.content_kind: str = content_kind
        self.source_type: str = source_type

    @abstractmethod
    def list_all(self) -> Iterable[ContentItem]:
        """
        用途说明：枚举该来源下的全部内容（包括回收站中的内容）。
        返回值说明：Iterable[ContentItem]
        """

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(kind={self.content_kind}, type={self.source_type})"


class InMemoryContentSource(ContentSource):
    """
    用途：内存内容来源，适合嵌入调用和测试
    """

    def __init__(self, content_kind: str, source_type: str, items: Optional[List[ContentItem]] = None) -> None:
        super().__init__(content_kind, source_type)
        self._items: List[ContentItem] = list(items or [])

    def add(self, item: ContentItem) -> None:
        self._items.append(item)

    def clear(self) -> None:
        self._items = []

    def list_all(self) -> Iterable[ContentItem]:
        return list(self._items)
