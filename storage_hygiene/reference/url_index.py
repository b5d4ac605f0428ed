from typing import Dict, List, Optional, Set, Tuple

from storage_hygiene.common.utils import Utils
from storage_hygiene.model.source_ref import SourceRef
from storage_hygiene.reference.url_extractor import ExtractedUrls, UrlExtractor


class UrlIndex:
    """
    用途说明：单轮引用扫描的 URL -> 来源索引。
        absolute_map: 绝对地址 -> 来源。相对路径补全后的绝对形式也会登记在这里，供匹配使用
        relative_map: 站内根相对路径 -> 来源
    另外记录哪些绝对地址是内容中直接出现的（literal），哪些只是由相对路径推导出来的，
    以便断链检测时每个被提取的 URL 只按它在内容中出现的形式报告一次。
    """

    def __init__(self, base_url: str = "") -> None:
        self.base_url: str = base_url or ""
        self.absolute_map: Dict[str, Set[SourceRef]] = {}
        self.relative_map: Dict[str, Set[SourceRef]] = {}
        # 内容中直接出现的绝对地址及其来源
        self._literal_absolute: Dict[str, Set[SourceRef]] = {}
        # 推导出的绝对地址 -> 推导出它的相对路径
        self._derived_from: Dict[str, Set[str]] = {}
        self._consumed_absolute: Set[str] = set()
        self._consumed_relative: Set[str] = set()

    # ------------------------------------------------------------------ 登记

    def add(self, extracted: ExtractedUrls, ref: SourceRef) -> None:
        for url in extracted.absolute_urls:
            self.add_absolute(url, ref)
        for path in extracted.relative_paths:
            self.add_relative(path, ref)

    def add_absolute(self, url: str, ref: SourceRef) -> None:
        self.absolute_map.setdefault(url, set()).add(ref)
        self._literal_absolute.setdefault(url, set()).add(ref)

    def add_relative(self, path: str, ref: SourceRef) -> None:
        self.relative_map.setdefault(path, set()).add(ref)
        derived: str = Utils.join_base_url(self.base_url, path)
        self.absolute_map.setdefault(derived, set()).add(ref)
        self._derived_from.setdefault(derived, set()).add(path)

    def checked_count(self) -> int:
        """用途说明：本轮提取到的不同 URL 数量（按内容中出现的形式计）。"""
        return len(self._literal_absolute) + len(self.relative_map)

    # ------------------------------------------------------------------ 匹配

    def match(self, access_url: Optional[str]) -> Set[SourceRef]:
        """
        用途说明：用附件访问地址匹配索引，三种方式的结果取并集，并记录被消费的 URL：
            1. 解码后的地址在 absolute_map 中精确匹配
            2. 地址本身是相对路径时，补全基础地址后在 absolute_map 中匹配
            3. 取地址的路径部分在 relative_map 中匹配
        入参说明：access_url (Optional[str]) - 附件访问地址
        返回值说明：Set[SourceRef] - 引用该附件的全部来源
        """
        refs: Set[SourceRef] = set()
        if not access_url:
            return refs

        decoded: str = Utils.decode_url(access_url)
        self._match_absolute(decoded, refs)

        if not UrlExtractor.is_full_url(decoded):
            joined: str = Utils.join_base_url(self.base_url, decoded)
            if joined != decoded:
                self._match_absolute(joined, refs)

        path: str = UrlExtractor.extract_path(decoded)
        if path in self.relative_map:
            refs |= self.relative_map[path]
            self._consumed_relative.add(path)
        return refs

    def _match_absolute(self, key: str, refs: Set[SourceRef]) -> None:
        sources: Optional[Set[SourceRef]] = self.absolute_map.get(key)
        if sources is None:
            return
        refs |= sources
        self._consumed_absolute.add(key)
        self._consumed_relative |= self._derived_from.get(key, set())

    # ------------------------------------------------------------------ 断链

    def unresolved(self) -> List[Tuple[str, Set[SourceRef]]]:
        """
        用途说明：在所有附件匹配完成后，返回没有被任何附件消费的 URL 及其来源。
        相对路径只要自身或补全后的形式被匹配即视为已消费；推导出的绝对地址本身不会单独报告；
        内容中直接出现的绝对地址只要自身被匹配，或推导出同一地址的任一相对路径被匹配，也视为已消费。
        返回值说明：List[Tuple[str, Set[SourceRef]]] - 按 URL 排序
        """
        result: List[Tuple[str, Set[SourceRef]]] = []
        for path, sources in self.relative_map.items():
            if path not in self._consumed_relative:
                result.append((path, sources))

        for url, sources in self._literal_absolute.items():
            if url in self._consumed_absolute:
                continue
            if self._derived_from.get(url, set()) & self._consumed_relative:
                continue
            result.append((url, sources))

        result.sort(key=lambda pair: pair[0])
        return result
