from dataclasses import asdict

from flask import Blueprint, request

from storage_hygiene.common.log_utils import LogUtils
from storage_hygiene.common.response import success_response
from storage_hygiene.service_manager import get_services

# 创建批量处理模块的蓝图
batch_bp = Blueprint('batch', __name__)

@batch_bp.route('/create', methods=['POST'])
def create_task():
    """
    用途说明：创建批量处理任务
    入参说明：JSON 包含 asset_ids (List[str])
    返回值说明：包含任务状态的 JSON 响应
    """
    data = request.get_json(silent=True) or {}
    asset_ids = data.get('asset_ids', [])
    LogUtils.info(f"请求创建批量处理任务，附件数: {len(asset_ids) if isinstance(asset_ids, list) else 0}")
    status = get_services().batch_processing_service.create_task(asset_ids)
    return success_response("批量处理任务已创建", data=asdict(status))

@batch_bp.route('/cancel', methods=['POST'])
def cancel_task():
    status = get_services().batch_processing_service.cancel_task()
    return success_response("已请求取消任务", data=asdict(status))

@batch_bp.route('/status', methods=['GET'])
def get_status():
    status = get_services().batch_processing_service.get_status()
    return success_response("获取任务状态成功", data=asdict(status))

@batch_bp.route('/settings', methods=['GET'])
def get_settings():
    view = get_services().batch_processing_service.get_settings_view()
    return success_response("获取批量处理配置成功", data=view)

@batch_bp.route('/logs', methods=['GET'])
def get_logs():
    """
    用途说明：分页获取批量处理日志
    入参说明：page, limit, task_id (可选)
    """
    page = request.args.get('page', default=1, type=int)
    limit = request.args.get('limit', default=20, type=int)
    task_id = request.args.get('task_id', default=None)
    result = get_services().batch_processing_service.list_logs(page, limit, task_id)
    return success_response("获取处理日志成功", data=result.to_dict())
