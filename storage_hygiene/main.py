import logging
import traceback
from typing import Any, Tuple

from flask import Flask, request
from flask_cors import CORS
from waitress import serve

from config import GlobalConfig
from storage_hygiene.batch.batch_routes import batch_bp
from storage_hygiene.common.exceptions import StorageHygieneError
from storage_hygiene.common.heartbeat_service import HeartbeatService
from storage_hygiene.common.log_utils import LogUtils
from storage_hygiene.common.response import error_response
from storage_hygiene.db.db_manager import db_manager
from storage_hygiene.duplicate.duplicate_routes import duplicate_bp
from storage_hygiene.reference.broken_link_routes import broken_link_bp
from storage_hygiene.reference.reference_routes import reference_bp
from storage_hygiene.reference.whitelist_routes import whitelist_bp
from storage_hygiene.service_manager import get_services
from storage_hygiene.setting.setting_service import settingService
from storage_hygiene.system.log_cleanup_service import LogCleanupService
from storage_hygiene.system.scan_status_initializer import ScanStatusInitializer
from storage_hygiene.system.system_routes import system_bp

# 初始化 Flask
app = Flask(__name__)

# 允许跨域
CORS(app, resources={r"/api/*": {"origins": "*"}}, allow_headers=["Content-Type"])

@app.before_request
def log_request_info() -> None:
    """
    用途：记录接口请求信息
    """
    if request.path.startswith('/api'):
        data: Any = ""
        if request.is_json:
            data = request.get_json(silent=True)
        elif request.form:
            data = dict(request.form)
        elif request.args:
            data = dict(request.args)
        LogUtils.api(f"方法: {request.method}, 路径: {request.path}, 参数: {data}")

# --- 异常处理句柄 ---

@app.errorhandler(400)
def bad_request(e: Any) -> Tuple[Any, int]:
    return error_response("请求参数错误或格式非法", 400)

@app.errorhandler(404)
def page_not_found(e: Any) -> Any:
    if request.path.startswith('/api'):
        return error_response("请求的接口不存在", 404)
    return "404 Not Found", 404

@app.errorhandler(StorageHygieneError)
def handle_business_exception(e: StorageHygieneError) -> Tuple[Any, int]:
    """
    用途：业务异常（参数校验失败、状态冲突等）按异常自带的状态码返回
    """
    LogUtils.info(f"业务异常 -> 路径: {request.path}, 信息: {e.message}")
    return error_response(e.message, e.http_code)

@app.errorhandler(Exception)
def handle_global_exception(e: Exception) -> Tuple[Any, int]:
    """
    用途：【API层统一捕获】拦截所有未处理的异常，记录堆栈日志并返回 500
    入参说明：e (Exception): 异常对象
    返回值说明：Response: 统一格式的错误响应
    """
    error_stack: str = traceback.format_exc()
    LogUtils.error(f"系统触发未捕获异常 -> 路径: {request.path}\n{error_stack}")
    return error_response(f"服务器内部错误: {str(e)}", 500)

# 注册蓝图
app.register_blueprint(reference_bp, url_prefix='/api/reference')
app.register_blueprint(broken_link_bp, url_prefix='/api/broken_link')
app.register_blueprint(whitelist_bp, url_prefix='/api/whitelist')
app.register_blueprint(duplicate_bp, url_prefix='/api/duplicate')
app.register_blueprint(batch_bp, url_prefix='/api/batch')
app.register_blueprint(system_bp, url_prefix='/api/system')

def start_server() -> None:
    LogUtils.init(level=logging.DEBUG)
    LogUtils.set_level(settingService.get_config().system.debug_api_enabled)
    db_manager.init_db()

    # 进程重启后修正仍处于运行阶段的状态
    ScanStatusInitializer.run()
    get_services()

    # 启动心跳服务与日志清理定时任务
    HeartbeatService.start()
    LogCleanupService.refresh_config()

    LogUtils.info(f"系统服务正在启动 (Port: {GlobalConfig.SYSTEM_PORT})...")
    LogUtils.info(f"访问地址: http://localhost:{GlobalConfig.SYSTEM_PORT}/api")
    serve(app, host='0.0.0.0', port=GlobalConfig.SYSTEM_PORT, threads=GlobalConfig.SERVER_THREADS)

if __name__ == '__main__':
    start_server()
