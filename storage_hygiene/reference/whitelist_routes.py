from dataclasses import asdict

from flask import Blueprint, request

from storage_hygiene.common.log_utils import LogUtils
from storage_hygiene.common.response import error_response, success_response
from storage_hygiene.reference.whitelist_service import WhitelistService

# 创建白名单模块的蓝图
whitelist_bp = Blueprint('whitelist', __name__)

@whitelist_bp.route('/list', methods=['GET'])
def list_entries():
    """
    用途说明：获取白名单，支持按 URL 或备注关键词搜索
    入参说明：keyword (可选)
    """
    keyword = request.args.get('keyword', default='').strip()
    entries = WhitelistService.list_entries(keyword)
    return success_response("获取白名单成功", data={"list": [asdict(e) for e in entries], "total": len(entries)})

@whitelist_bp.route('/add', methods=['POST'])
def add_entry():
    """
    用途说明：添加白名单条目（已存在时更新匹配模式与备注）
    入参说明：JSON 包含 url_pattern, match_mode (exact/prefix，默认 exact), note
    """
    data = request.get_json(silent=True) or {}
    entry = WhitelistService.add(data.get('url_pattern'), data.get('match_mode'), data.get('note'))
    LogUtils.info(f"添加白名单: {entry.url_pattern} ({entry.match_mode})")
    return success_response("添加白名单成功", data=asdict(entry))

@whitelist_bp.route('/batch_add', methods=['POST'])
def batch_add():
    """
    用途说明：批量添加精确匹配的白名单条目
    入参说明：JSON 包含 urls (List[str]), note
    """
    data = request.get_json(silent=True) or {}
    count = WhitelistService.batch_add(data.get('urls'), data.get('note'))
    return success_response(f"已添加 {count} 条白名单", data={"count": count})

@whitelist_bp.route('/delete', methods=['POST'])
def delete_entry():
    data = request.get_json(silent=True) or {}
    entry_id = data.get('id')
    if not isinstance(entry_id, int):
        return error_response("白名单条目 ID 不能为空")
    WhitelistService.delete(entry_id)
    return success_response("删除白名单成功")

@whitelist_bp.route('/check', methods=['GET'])
def check_url():
    """
    用途说明：检查 URL 是否命中白名单
    入参说明：url
    返回值说明：data 包含 whitelisted (bool) 与命中的条目
    """
    url = request.args.get('url', default='').strip()
    if not url:
        return error_response("URL 不能为空")
    entry = WhitelistService.find_match(url)
    return success_response("检查完成", data={
        "whitelisted": entry is not None,
        "entry": asdict(entry) if entry else None
    })

@whitelist_bp.route('/clear', methods=['POST'])
def clear_entries():
    count = WhitelistService.clear_all()
    return success_response("白名单已清空", data={"count": count})
