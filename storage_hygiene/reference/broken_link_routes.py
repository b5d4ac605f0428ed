from dataclasses import asdict

from flask import Blueprint, request

from storage_hygiene.common.log_utils import LogUtils
from storage_hygiene.common.response import success_response
from storage_hygiene.service_manager import get_services

# 创建失效链接模块的蓝图
broken_link_bp = Blueprint('broken_link', __name__)

@broken_link_bp.route('/scan', methods=['POST'])
def start_scan():
    """
    用途说明：触发失效链接扫描（会同时执行一轮引用扫描）
    """
    LogUtils.info("触发了失效链接扫描")
    status = get_services().broken_link_service.start_scan()
    return success_response("失效链接扫描已启动", data=asdict(status))

@broken_link_bp.route('/status', methods=['GET'])
def get_status():
    status = get_services().broken_link_service.get_status()
    return success_response("获取扫描状态成功", data=asdict(status))

@broken_link_bp.route('/list', methods=['GET'])
def list_broken_links():
    """
    用途说明：分页获取失效链接
    入参说明：page, limit, source_type, keyword, sort ("source_count,desc" / "discovered_at,asc" 等)
    返回值说明：包含分页数据的 JSON 响应
    """
    page = request.args.get('page', default=1, type=int)
    limit = request.args.get('limit', default=20, type=int)
    source_type = request.args.get('source_type', default=None)
    keyword = request.args.get('keyword', default='').strip()
    sort = request.args.get('sort', default=None)

    result = get_services().broken_link_service.list_broken_links(page, limit, source_type, keyword, sort)
    return success_response("获取失效链接列表成功", data=result.to_dict())

@broken_link_bp.route('/source_types', methods=['GET'])
def get_source_types():
    source_types = get_services().broken_link_service.get_source_types()
    return success_response("获取来源类型成功", data={"source_types": source_types})

@broken_link_bp.route('/whitelist', methods=['POST'])
def add_to_whitelist():
    """
    用途说明：把失效链接加入白名单并移除对应记录
    入参说明：JSON 包含 urls (List[str])，note (str，可选)
    """
    data = request.get_json(silent=True) or {}
    urls = data.get('urls', [])
    removed = get_services().broken_link_service.add_to_whitelist(urls, data.get('note'))
    return success_response("已加入白名单", data={"removed_count": removed})

@broken_link_bp.route('/clear', methods=['POST'])
def clear_broken_links():
    get_services().broken_link_service.clear_all()
    return success_response("失效链接记录已清空")
