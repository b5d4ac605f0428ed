from dataclasses import asdict

from flask import Blueprint, request

from storage_hygiene.common.log_utils import LogUtils
from storage_hygiene.common.response import success_response
from storage_hygiene.service_manager import get_services

# 创建重复检测模块的蓝图
duplicate_bp = Blueprint('duplicate', __name__)

@duplicate_bp.route('/scan', methods=['POST'])
def start_scan():
    """
    用途说明：异步触发重复文件检测
    """
    LogUtils.info("触发了重复文件检测")
    status = get_services().duplicate_service.start_scan()
    return success_response("重复检测已启动", data=asdict(status))

@duplicate_bp.route('/status', methods=['GET'])
def get_status():
    status = get_services().duplicate_service.get_status()
    return success_response("获取扫描状态成功", data=asdict(status))

@duplicate_bp.route('/list', methods=['GET'])
def list_groups():
    """
    用途说明：分页获取重复组（按可节省空间倒序）
    入参说明：page, limit
    """
    page = request.args.get('page', default=1, type=int)
    limit = request.args.get('limit', default=20, type=int)
    result = get_services().duplicate_service.list_groups(page, limit)
    return success_response("获取重复组成功", data=result.to_dict())

@duplicate_bp.route('/delete', methods=['POST'])
def delete_duplicates():
    """
    用途说明：删除重复组中的指定文件（组内至少保留一个）
    入参说明：JSON 包含 content_hash (str)，asset_ids (List[str])，operator (str，可选)
    返回值说明：包含删除结果 (CleanupResult) 的 JSON 响应
    """
    data = request.get_json(silent=True) or {}
    operator = data.get('operator') or 'system'
    result = get_services().duplicate_service.delete_duplicates(
        data.get('content_hash'), data.get('asset_ids'), operator
    )
    return success_response(f"已删除 {result.deleted_count} 个重复文件", data=asdict(result))

@duplicate_bp.route('/clear', methods=['POST'])
def clear_groups():
    get_services().duplicate_service.clear_all()
    return success_response("重复检测结果已清空")
