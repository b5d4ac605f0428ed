import os
import threading
from typing import Dict, List, Optional

from storage_hygiene.common.log_utils import LogUtils
from storage_hygiene.setting.setting_models import ContentScanSettings
from storage_hygiene.source.base_content_source import ContentSource
from storage_hygiene.source.json_file_content_source import JsonFileContentSource


class ContentKind:
    """
    用途：内容类别常量，以及每个类别默认对应的来源类型名称
    """
    POST = "post"
    PAGE = "page"
    COMMENT = "comment"
    REPLY = "reply"
    MOMENT = "moment"
    PHOTO = "photo"
    DOC = "doc"
    DOC_PROJECT = "doc_project"
    SYSTEM_SETTING = "system_setting"
    PLUGIN_SETTING = "plugin_setting"
    THEME_SETTING = "theme_setting"
    USER = "user"

    # 扫描时的固定顺序
    ALL: List[str] = [POST, PAGE, COMMENT, REPLY, MOMENT, PHOTO, DOC, DOC_PROJECT,
                      SYSTEM_SETTING, PLUGIN_SETTING, THEME_SETTING, USER]

    SOURCE_TYPES: Dict[str, str] = {
        POST: "Post",
        PAGE: "SinglePage",
        COMMENT: "Comment",
        REPLY: "Reply",
        MOMENT: "Moment",
        PHOTO: "Photo",
        DOC: "Doc",
        DOC_PROJECT: "DocProject",
        SYSTEM_SETTING: "SystemSetting",
        PLUGIN_SETTING: "PluginSetting",
        THEME_SETTING: "ThemeSetting",
        USER: "User",
    }

    # 由可选插件提供的内容类别，未安装时直接跳过
    OPTIONAL: List[str] = [MOMENT, PHOTO, DOC, DOC_PROJECT]

    CONFIG_KINDS: List[str] = [SYSTEM_SETTING, PLUGIN_SETTING, THEME_SETTING]


class ContentSourceRegistry:
    """
    用途说明：内容来源注册表。每种内容类别至多注册一个来源；
    每轮扫描开始时调用一次 resolve，按配置开关得到本轮需要扫描的来源列表。
    """

    # 内容类别 -> ContentScanSettings 中的开关名；不在表中的类别始终扫描
    _TOGGLES: Dict[str, str] = {
        ContentKind.POST: "scan_posts",
        ContentKind.PAGE: "scan_pages",
        ContentKind.COMMENT: "scan_comments",
        ContentKind.REPLY: "scan_comments",
        ContentKind.MOMENT: "scan_moments",
        ContentKind.PHOTO: "scan_photos",
        ContentKind.DOC: "scan_docs",
        ContentKind.DOC_PROJECT: "scan_docs",
    }

    def __init__(self) -> None:
        self._lock: threading.Lock = threading.Lock()
        self._sources: Dict[str, ContentSource] = {}

    def register(self, source: ContentSource) -> None:
        """
        用途说明：注册内容来源，同一类别重复注册时覆盖旧的来源。
        入参说明：source (ContentSource) - 内容来源
        """
        with self._lock:
            if source.content_kind in self._sources:
                LogUtils.info(f"内容来源 [{source.content_kind}] 已存在，覆盖为 {source}")
            self._sources[source.content_kind] = source

    def unregister(self, content_kind: str) -> None:
        with self._lock:
            self._sources.pop(content_kind, None)

    def get(self, content_kind: str) -> Optional[ContentSource]:
        with self._lock:
            return self._sources.get(content_kind)

    def is_enabled(self, content_kind: str, settings: ContentScanSettings) -> bool:
        toggle: Optional[str] = self._TOGGLES.get(content_kind)
        if toggle is None:
            return True
        return bool(getattr(settings, toggle, False))

    def resolve(self, settings: ContentScanSettings) -> List[ContentSource]:
        """
        用途说明：解析本轮扫描需要使用的来源。
        入参说明：settings (ContentScanSettings) - 内容扫描开关
        返回值说明：List[ContentSource] - 按 ContentKind.ALL 顺序排列，未注册的类别与自定义类别追加在后
        """
        with self._lock:
            registered: Dict[str, ContentSource] = dict(self._sources)

        resolved: List[ContentSource] = []
        ordered_kinds: List[str] = ContentKind.ALL + sorted(k for k in registered if k not in ContentKind.ALL)
        for kind in ordered_kinds:
            if not self.is_enabled(kind, settings):
                continue
            source: Optional[ContentSource] = registered.get(kind)
            if source is None:
                if kind in ContentKind.OPTIONAL:
                    LogUtils.info(f"内容类别 [{kind}] 未安装，跳过扫描")
                else:
                    LogUtils.debug(f"内容类别 [{kind}] 没有注册来源，跳过扫描")
                continue
            resolved.append(source)
        return resolved

    def load_directory(self, directory: str) -> int:
        """
        用途说明：从导出目录批量注册 JsonFileContentSource，文件名即内容类别，如 post.json、user.json。
        入参说明：directory (str) - 导出目录
        返回值说明：int - 注册的来源数量
        """
        if not os.path.isdir(directory):
            LogUtils.info(f"内容导出目录不存在，未注册任何内容来源: {directory}")
            return 0

        count: int = 0
        for file_name in sorted(os.listdir(directory)):
            kind, ext = os.path.splitext(file_name)
            if ext.lower() != ".json":
                continue
            source_type: str = ContentKind.SOURCE_TYPES.get(kind, kind)
            self.register(JsonFileContentSource(kind, source_type, os.path.join(directory, file_name)))
            count += 1
        LogUtils.info(f"已从 {directory} 注册 {count} 个内容来源")
        return count
