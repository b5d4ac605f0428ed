import re
from dataclasses import dataclass, field
from typing import Iterable, Optional, Pattern, Set
from urllib.parse import urlsplit

from bs4 import BeautifulSoup

from storage_hygiene.common.log_utils import LogUtils
from storage_hygiene.common.utils import Utils


@dataclass
class ExtractedUrls:
    """
    用途：一次提取的结果，绝对地址与站内根相对路径分开存放（同一 URL 只会出现在其中一个集合）
    """
    absolute_urls: Set[str] = field(default_factory=set)
    relative_paths: Set[str] = field(default_factory=set)

    def is_empty(self) -> bool:
        return not self.absolute_urls and not self.relative_paths

    def merge(self, other: 'ExtractedUrls') -> 'ExtractedUrls':
        self.absolute_urls |= other.absolute_urls
        self.relative_paths |= other.relative_paths
        return self


class UrlExtractor:
    """
    用途说明：从内容片段（HTML / Markdown / 纯文本 / JSON）中提取候选附件地址。
    HTML 走 DOM 解析，其余文本走四条独立正则：
        1. Markdown 图片  ![alt](url "title")
        2. Markdown 链接  [text](url "title")（前面不能是 !）
        3. http(s) 绝对地址，需以 2~5 位扩展名结尾，可带引号
        4. /upload/ 开头的站内路径，扩展名与结束符规则同上
    所有结果统一做百分号解码与过滤，再分类为绝对地址或相对路径。
    """

    MD_IMAGE: Pattern = re.compile(r'!\[[^\]]*\]\(([^)"]+)(?:\s+"[^"]*")?\)')
    MD_LINK: Pattern = re.compile(r'(?<!!)\[[^\]]*\]\(([^)"]+)(?:\s+"[^"]*")?\)')
    HTTP_URL: Pattern = re.compile(
        r'(["\']?)(https?://[^"\'<>\s]+?\.\w{2,5})\1(?=["\'\s<>\]\)\},]|$)', re.IGNORECASE
    )
    UPLOAD_PATH: Pattern = re.compile(
        r'(?<![a-zA-Z0-9.\-])(/upload/[^"\'<>\s]+?\.\w{2,5})(?=["\'\s<>\]\)\},]|$)', re.IGNORECASE
    )
    STYLE_URL: Pattern = re.compile(r'url\([\'"]?([^)\'"]+)[\'"]?\)')

    # 需要读取 src 属性的标签
    SRC_TAGS: tuple = ("img", "video", "audio", "source", "iframe", "embed")

    REJECTED_PREFIXES: tuple = ("data:", "javascript:", "mailto:", "#")

    @classmethod
    def extract(cls, content: Optional[str], is_html: bool) -> ExtractedUrls:
        """
        用途说明：提取内容中的附件地址。
        入参说明：
            content (Optional[str]): 内容片段
            is_html (bool): 是否按 HTML 解析；解析失败时自动回退到文本规则
        返回值说明：ExtractedUrls - 去重后的绝对地址与相对路径
        """
        result: ExtractedUrls = ExtractedUrls()
        if not content or not content.strip():
            return result

        raw_urls: Optional[Set[str]] = None
        if is_html:
            try:
                raw_urls = cls._collect_from_html(content)
            except Exception as e:
                LogUtils.debug(f"HTML 解析失败，改用文本规则提取: {e}")
        if raw_urls is None:
            raw_urls = cls._collect_from_text(content)

        for raw in raw_urls:
            cls._classify_into(raw, result)
        return result

    @classmethod
    def _collect_from_html(cls, content: str) -> Set[str]:
        soup: BeautifulSoup = BeautifulSoup(content, "html.parser")
        urls: Set[str] = set()

        for tag in soup.find_all(cls.SRC_TAGS, attrs={"src": True}):
            urls.add(tag["src"])
        for tag in soup.find_all("a", attrs={"href": True}):
            urls.add(tag["href"])
        for tag in soup.find_all("object", attrs={"data": True}):
            urls.add(tag["data"])
        for tag in soup.find_all(attrs={"style": True}):
            urls.update(cls.STYLE_URL.findall(tag["style"]))
        return urls

    @classmethod
    def _collect_from_text(cls, content: str) -> Set[str]:
        urls: Set[str] = set()
        urls.update(cls.MD_IMAGE.findall(content))
        urls.update(cls.MD_LINK.findall(content))
        urls.update(match.group(2) for match in cls.HTTP_URL.finditer(content))
        urls.update(cls.UPLOAD_PATH.findall(content))
        return urls

    @classmethod
    def _classify_into(cls, raw_url: str, result: ExtractedUrls) -> None:
        decoded: str = Utils.decode_url(raw_url.strip())
        if not cls.is_valid_url(decoded):
            return
        if cls.is_full_url(decoded):
            result.absolute_urls.add(decoded)
        elif decoded.startswith("/"):
            result.relative_paths.add(decoded)

    @classmethod
    def is_valid_url(cls, url: Optional[str]) -> bool:
        """用途说明：过滤空串以及 data: / javascript: / mailto: / # 开头的地址。"""
        if not url:
            return False
        return not url.lower().startswith(cls.REJECTED_PREFIXES)

    @staticmethod
    def is_full_url(url: Optional[str]) -> bool:
        return bool(url) and (url.startswith("http://") or url.startswith("https://"))

    @staticmethod
    def extract_path(url: str) -> str:
        """
        用途说明：取绝对地址的路径部分；非绝对地址原样返回。
        入参说明：url (str) - 已解码的地址
        返回值说明：str - 路径部分（不含查询串与锚点）
        """
        if not UrlExtractor.is_full_url(url):
            return url
        try:
            return urlsplit(url).path
        except ValueError:
            # 解析失败时手动截取协议与主机之后的部分
            host_start: int = url.find("://") + 3
            slash: int = url.find("/", host_start)
            if slash < 0:
                return ""
            path: str = url[slash:]
            for sep in ("?", "#"):
                path = path.split(sep, 1)[0]
            return path

    @classmethod
    def extract_field_value(cls, value: Optional[str]) -> ExtractedUrls:
        """
        用途说明：处理单值字段（封面、头像、媒体地址等），整体视为一个地址。
        相对写法会被规范化：去掉 ./ 前缀、补全开头的 /，包含 ../ 的路径无法确定位置，直接忽略。
        入参说明：value (Optional[str]) - 字段原值
        返回值说明：ExtractedUrls - 至多包含一个地址
        """
        result: ExtractedUrls = ExtractedUrls()
        if not value or not value.strip():
            return result
        decoded: str = Utils.decode_url(value.strip())
        if not cls.is_valid_url(decoded):
            return result
        if cls.is_full_url(decoded):
            result.absolute_urls.add(decoded)
            return result
        if decoded.startswith("../"):
            return result
        if decoded.startswith("./"):
            decoded = decoded[2:]
        if not decoded.startswith("/"):
            decoded = "/" + decoded
        result.relative_paths.add(decoded)
        return result

    @classmethod
    def extract_many(cls, fragments: Iterable[str], is_html: bool) -> ExtractedUrls:
        """用途说明：对多个片段提取并合并结果。"""
        result: ExtractedUrls = ExtractedUrls()
        for fragment in fragments:
            result.merge(cls.extract(fragment, is_html))
        return result
