from dataclasses import dataclass
from typing import Optional

from storage_hygiene.db.db_constants import DBConstants


@dataclass
class WhitelistEntryDBModel:
    """
    用途：whitelist_entries 表对应的数据库模型
    入参说明：
        id (Optional[int]): 主键
        url_pattern (str): 链接或链接前缀
        match_mode (str): exact（完全相等）或 prefix（前缀匹配）
        note (Optional[str]): 备注
        created_at (Optional[str]): 创建时间
    """
    id: Optional[int] = None
    url_pattern: str = ""
    match_mode: str = DBConstants.MatchMode.EXACT
    note: Optional[str] = None
    created_at: Optional[str] = None

    def matches(self, url: str) -> bool:
        """
        用途：判断链接是否命中该白名单条目
        入参说明：url (str) - 待检查链接
        返回值说明：bool - exact 模式要求完全相等，其余模式按前缀匹配
        """
        if self.match_mode == DBConstants.MatchMode.EXACT:
            return url == self.url_pattern
        return url.startswith(self.url_pattern)
