from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass
class ContentItem:
    """
    用途：内容来源适配器产出的单条内容。
    入参说明：
        source_id (str): 内容唯一标识
        title (Optional[str]): 标题
        navigable_url (Optional[str]): 访问地址；配置类内容可包含 {group} 占位符，按配置分组替换
        is_deleted (bool): 是否位于回收站
        rendered_html (Optional[str]): 渲染后的 HTML 正文
        raw_text (Optional[str]): 非 HTML 正文（Markdown / 纯文本 / JSON）
        structured_fields (Dict[str, Any]): 结构化字段，如 cover、medium、url、icon、avatar，
            配置类内容为 {分组名: JSON 字符串}
        owner_setting_id (Optional[str]): 配置类内容所属的配置名称
    """
    source_id: str
    title: Optional[str] = None
    navigable_url: Optional[str] = None
    is_deleted: bool = False
    rendered_html: Optional[str] = None
    raw_text: Optional[str] = None
    structured_fields: Dict[str, Any] = field(default_factory=dict)
    owner_setting_id: Optional[str] = None
