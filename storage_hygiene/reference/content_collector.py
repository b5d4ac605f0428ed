import json
from typing import Any, Callable, Dict, List, Optional, Tuple

from storage_hygiene.common.log_utils import LogUtils
from storage_hygiene.model.content_item import ContentItem
from storage_hygiene.model.source_ref import SourceRef
from storage_hygiene.reference.url_extractor import ExtractedUrls, UrlExtractor
from storage_hygiene.reference.url_index import UrlIndex
from storage_hygiene.source.base_content_source import ContentSource
from storage_hygiene.source.content_source_registry import ContentKind

# 单条内容的提取结果：(引用方式, 提取到的 URL)
_Extraction = List[Tuple[str, ExtractedUrls]]


class ContentCollector:
    """
    用途说明：遍历内容来源，按内容类别解释每条内容的字段，把提取到的 URL 连同来源信息登记到 UrlIndex。
    单条内容解析失败只记录日志并跳过，该条内容不会贡献任何 URL。
    """

    def __init__(self, url_index: UrlIndex) -> None:
        self.url_index: UrlIndex = url_index
        self.scanned_count: int = 0
        self.failed_count: int = 0
        self._handlers: Dict[str, Callable[[ContentItem], _Extraction]] = {
            ContentKind.POST: self._extract_article,
            ContentKind.PAGE: self._extract_article,
            ContentKind.COMMENT: self._extract_body,
            ContentKind.REPLY: self._extract_body,
            ContentKind.MOMENT: self._extract_moment,
            ContentKind.PHOTO: self._extract_photo,
            ContentKind.DOC: self._extract_body,
            ContentKind.DOC_PROJECT: self._extract_doc_project,
            ContentKind.USER: self._extract_user,
        }

    def collect(self, source: ContentSource) -> int:
        """
        用途说明：扫描一个内容来源。
        入参说明：source (ContentSource) - 内容来源
        返回值说明：int - 成功扫描的内容条数
        """
        collected: int = 0
        for item in source.list_all():
            try:
                if source.content_kind in ContentKind.CONFIG_KINDS:
                    self._collect_config(source, item)
                else:
                    self._collect_item(source, item)
                collected += 1
            except Exception as e:
                self.failed_count += 1
                LogUtils.error(f"解析内容失败，已跳过: [{source.source_type}] {item.source_id}, 错误: {e}")
        self.scanned_count += collected
        LogUtils.debug(f"内容来源 {source.source_type} 扫描完成，共 {collected} 条")
        return collected

    def _collect_item(self, source: ContentSource, item: ContentItem) -> None:
        handler: Callable[[ContentItem], _Extraction] = self._handlers.get(source.content_kind, self._extract_body)
        # 先完成整条内容的提取，再统一登记，保证失败的条目不会留下部分结果
        extraction: _Extraction = handler(item)
        for reference_kind, urls in extraction:
            if urls.is_empty():
                continue
            self.url_index.add(urls, self._make_ref(source, item, reference_kind, item.navigable_url))

    @staticmethod
    def _make_ref(source: ContentSource, item: ContentItem, reference_kind: str,
                  navigable_url: Optional[str], owner_setting_id: Optional[str] = None) -> SourceRef:
        return SourceRef(
            source_type=source.source_type,
            source_id=item.source_id,
            title=item.title,
            navigable_url=navigable_url,
            is_in_recycle_bin=item.is_deleted,
            reference_kind=reference_kind,
            owner_setting_id=owner_setting_id
        )

    # ------------------------------------------------------------------ 各内容类别

    @staticmethod
    def _body_urls(item: ContentItem) -> ExtractedUrls:
        if item.rendered_html:
            return UrlExtractor.extract(item.rendered_html, True)
        return UrlExtractor.extract(item.raw_text, False)

    def _extract_body(self, item: ContentItem) -> _Extraction:
        return [("content", self._body_urls(item))]

    def _extract_article(self, item: ContentItem) -> _Extraction:
        return [
            ("cover", UrlExtractor.extract_field_value(item.structured_fields.get("cover"))),
            ("content", self._body_urls(item)),
        ]

    def _extract_moment(self, item: ContentItem) -> _Extraction:
        media: ExtractedUrls = ExtractedUrls()
        for medium in item.structured_fields.get("medium") or []:
            if isinstance(medium, dict):
                media.merge(UrlExtractor.extract_field_value(medium.get("url")))
        return [("content", self._body_urls(item)), ("media", media)]

    @staticmethod
    def _extract_photo(item: ContentItem) -> _Extraction:
        url: Optional[str] = item.structured_fields.get("url")
        cover: Optional[str] = item.structured_fields.get("cover")
        extraction: _Extraction = [("content", UrlExtractor.extract_field_value(url))]
        if cover and cover != url:
            extraction.append(("cover", UrlExtractor.extract_field_value(cover)))
        return extraction

    @staticmethod
    def _extract_doc_project(item: ContentItem) -> _Extraction:
        return [("icon", UrlExtractor.extract_field_value(item.structured_fields.get("icon")))]

    @staticmethod
    def _extract_user(item: ContentItem) -> _Extraction:
        return [("avatar", UrlExtractor.extract_field_value(item.structured_fields.get("avatar")))]

    # ------------------------------------------------------------------ 配置类内容

    def _collect_config(self, source: ContentSource, item: ContentItem) -> None:
        """
        用途说明：配置类内容的 structured_fields 为 {分组名: JSON 字符串}。
        JSON 解析为对象时逐个字段按文本规则提取，引用方式记为分组名；
        不是对象或解析失败时把原始文本整体按文本规则提取。
        访问地址中的 {group} 占位符替换为分组名。
        """
        owner: str = item.owner_setting_id or item.source_id
        pending: List[Tuple[SourceRef, ExtractedUrls]] = []

        for group_key, raw_value in item.structured_fields.items():
            if raw_value is None:
                continue
            urls: ExtractedUrls = self._config_group_urls(raw_value)
            if urls.is_empty():
                continue
            navigable_url: Optional[str] = item.navigable_url
            if navigable_url:
                navigable_url = navigable_url.replace("{group}", group_key)
            pending.append((self._make_ref(source, item, group_key, navigable_url, owner), urls))

        for ref, urls in pending:
            self.url_index.add(urls, ref)

    @staticmethod
    def _config_group_urls(raw_value: Any) -> ExtractedUrls:
        if isinstance(raw_value, str):
            try:
                parsed: Any = json.loads(raw_value)
            except ValueError:
                return UrlExtractor.extract(raw_value, False)
        else:
            parsed = raw_value

        if not isinstance(parsed, dict):
            text: str = raw_value if isinstance(raw_value, str) else json.dumps(raw_value, ensure_ascii=False)
            return UrlExtractor.extract(text, False)

        urls: ExtractedUrls = ExtractedUrls()
        for value in parsed.values():
            if value is None:
                continue
            text = value if isinstance(value, str) else json.dumps(value, ensure_ascii=False)
            urls.merge(UrlExtractor.extract(text, False))
        return urls
