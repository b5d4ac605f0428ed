import json
import os
from dataclasses import fields
from typing import Any, Dict, Iterable, List, Set

from storage_hygiene.common.log_utils import LogUtils
from storage_hygiene.model.content_item import ContentItem
from storage_hygiene.source.base_content_source import ContentSource


class JsonFileContentSource(ContentSource):
    """
    用途说明：从 JSON 导出文件读取内容。文件内容为对象数组，每个对象的键与 ContentItem 字段同名，
    未知的键会被忽略。每次 list_all 都重新读取文件，保证扫描看到的是最新导出。
    """

    _ITEM_FIELDS: Set[str] = {f.name for f in fields(ContentItem)}

    def __init__(self, content_kind: str, source_type: str, file_path: str) -> None:
        super().__init__(content_kind, source_type)
        self.file_path: str = file_path

    def list_all(self) -> Iterable[ContentItem]:
        """
        用途说明：读取并解析导出文件。
        返回值说明：Iterable[ContentItem] - 文件不存在时返回空列表
        异常说明：文件内容不是合法 JSON 数组时抛出 ValueError，由调用方决定如何处理
        """
        if not os.path.exists(self.file_path):
            LogUtils.info(f"内容导出文件不存在，跳过: {self.file_path}")
            return []

        with open(self.file_path, "r", encoding="utf-8") as f:
            data: Any = json.load(f)
        if not isinstance(data, list):
            raise ValueError(f"内容导出文件格式错误，应为数组: {self.file_path}")

        items: List[ContentItem] = []
        for raw in data:
            if not isinstance(raw, dict) or not raw.get("source_id"):
                LogUtils.debug(f"忽略无效内容条目: {raw}")
                continue
            kwargs: Dict[str, Any] = {k: v for k, v in raw.items() if k in self._ITEM_FIELDS}
            kwargs["source_id"] = str(kwargs["source_id"])
            items.append(ContentItem(**kwargs))
        return items
