from dataclasses import asdict

from flask import Blueprint, request

from config import GlobalConfig
from storage_hygiene.common.log_utils import LogUtils
from storage_hygiene.common.response import error_response, success_response
from storage_hygiene.db.processor_manager import processor_manager
from storage_hygiene.setting.setting_service import settingService
from storage_hygiene.system.log_cleanup_service import LogCleanupService

# 创建系统管理模块的蓝图
system_bp = Blueprint('system', __name__)

@system_bp.route('/cleanup_logs', methods=['GET'])
def get_cleanup_logs():
    """
    用途说明：分页获取附件删除记录（未引用清理 / 重复清理）
    入参说明：page, limit, reason (UNREFERENCED / DUPLICATE，可选)
    """
    page = request.args.get('page', default=1, type=int)
    limit = request.args.get('limit', default=20, type=int)
    reason = request.args.get('reason', default=None)
    result = processor_manager.cleanup_log_processor.get_paged(page, limit, reason)
    return success_response("获取清理日志成功", data=result.to_dict())

@system_bp.route('/settings/get', methods=['GET'])
def get_setting():
    """
    用途：获取当前的配置信息
    返回值说明：包含全局配置信息 (AppConfig) 的 JSON 响应
    """
    config = settingService.get_config()
    return success_response("获取配置成功", data=asdict(config))

@system_bp.route('/settings/update', methods=['POST'])
def update_setting():
    """
    用途：更新并保存配置信息
    入参说明：JSON 对象，一级键为配置段名（site、content_scan、exclude、scan、batch_processing、storage、log、system）
    返回值说明：操作结果响应
    """
    # 使用 silent=True 防止解析失败时直接返回 HTML 400 错误
    data = request.get_json(silent=True)
    if not data:
        return error_response("请求数据不能为空或格式错误")

    operator = data.get('operator') or 'system'
    if not settingService.update_settings(data, operator):
        return error_response("没有可更新的配置项")

    if isinstance(data.get('log'), dict):
        LogCleanupService.refresh_config()
        LogUtils.info("检测到日志清理配置变更，已刷新定时任务")
    return success_response("配置更新成功", data=asdict(settingService.get_config()))

@system_bp.route('/version', methods=['GET'])
def get_app_version():
    """
    用途说明：获取当前应用的后端版本号
    """
    return success_response("获取应用版本号成功", data={"version": GlobalConfig.APP_VERSION})
