from dataclasses import asdict

from flask import Blueprint, request

from storage_hygiene.common.log_utils import LogUtils
from storage_hygiene.common.response import success_response
from storage_hygiene.service_manager import get_services

# 创建引用统计模块的蓝图
reference_bp = Blueprint('reference', __name__)

@reference_bp.route('/scan', methods=['POST'])
def start_scan():
    """
    用途说明：异步触发引用扫描（同时完成失效链接检测）
    入参说明：无
    返回值说明：JSON 格式响应，data 为切换后的扫描状态
    """
    LogUtils.info("触发了引用扫描")
    status = get_services().reference_service.start_scan()
    return success_response("引用扫描已启动", data=asdict(status))

@reference_bp.route('/status', methods=['GET'])
def get_status():
    """
    用途说明：获取引用扫描状态，扫描进行中时包含实时进度
    """
    status = get_services().reference_service.get_status()
    return success_response("获取扫描状态成功", data=asdict(status))

@reference_bp.route('/list', methods=['GET'])
def list_references():
    """
    用途说明：分页获取附件引用情况
    入参说明：page, limit, filter (all/referenced/unreferenced), keyword, sort ("字段,方向")
    返回值说明：包含分页数据的 JSON 响应
    """
    page = request.args.get('page', default=1, type=int)
    limit = request.args.get('limit', default=20, type=int)
    filter_type = request.args.get('filter', default='all')
    keyword = request.args.get('keyword', default='').strip()
    sort = request.args.get('sort', default=None)

    result = get_services().reference_service.list_references(page, limit, filter_type, keyword, sort)
    return success_response("获取引用列表成功", data=result.to_dict())

@reference_bp.route('/detail', methods=['GET'])
def get_detail():
    """
    用途说明：获取单个附件的引用来源详情
    入参说明：asset_id
    """
    asset_id = request.args.get('asset_id', default='').strip()
    item = get_services().reference_service.get_reference(asset_id)
    return success_response("获取引用详情成功", data=asdict(item))

@reference_bp.route('/delete_unreferenced', methods=['POST'])
def delete_unreferenced():
    """
    用途说明：删除未引用的附件
    入参说明：JSON 包含 asset_ids (List[str])，operator (str，可选)
    返回值说明：包含删除结果 (CleanupResult) 的 JSON 响应
    """
    data = request.get_json(silent=True) or {}
    asset_ids = data.get('asset_ids', [])
    operator = data.get('operator') or 'system'

    LogUtils.info(f"{operator} 请求删除未引用附件，数量: {len(asset_ids)}")
    result = get_services().reference_service.delete_unreferenced(asset_ids, operator)
    return success_response(f"已删除 {result.deleted_count} 个文件", data=asdict(result))

@reference_bp.route('/clear', methods=['POST'])
def clear_references():
    """
    用途说明：清空引用记录并重置扫描状态
    """
    get_services().reference_service.clear_all()
    return success_response("引用记录已清空")
