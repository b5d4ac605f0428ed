class StorageHygieneError(Exception):
    """
    用途说明：业务异常基类，携带面向调用方的可读提示以及建议的 HTTP 状态码。
    入参说明：message (str) - 可读错误信息
    """
    http_code: int = 400

    def __init__(self, message: str) -> None:
        self.message: str = message
        super().__init__(message)


class ValidationError(StorageHygieneError):
    """用途说明：入参校验失败（空列表、缺少必填项等），任务不会启动。"""
    http_code = 400


class StateConflictError(StorageHygieneError):
    """用途说明：生命周期状态冲突（如扫描进行中再次触发、任务已在执行等）。"""
    http_code = 409


class ConcurrencyConflictError(StorageHygieneError):
    """用途说明：状态记录乐观锁冲突，由重试工具捕获处理，不会直接暴露给调用方。"""
    http_code = 409


class AssetTransferError(StorageHygieneError):
    """用途说明：附件下载/读取失败或超时，记录到单个条目上，不中断整轮扫描。"""
    http_code = 500
