import time
from functools import wraps
from typing import Any, Callable, Optional, Tuple, Type, TypeVar

from storage_hygiene.common.exceptions import ConcurrencyConflictError
from storage_hygiene.common.log_utils import LogUtils

T = TypeVar('T')


def retry_on_conflict(
        max_attempts: int = 3,
        delay_secs: float = 0.1,
        backoff_multiplier: float = 2.0,
        exceptions: Tuple[Type[BaseException], ...] = (ConcurrencyConflictError,)
) -> Callable[[Callable[..., T]], Callable[..., Optional[T]]]:
    """
    用途说明：装饰器，状态记录写入遇到乐观锁冲突时按指数退避重试。
    重试耗尽后仅记录错误日志并放弃本次更新（返回 None），不会把冲突向上抛出，
    以免阻塞扫描或批量处理流程。被装饰函数每次重试都会重新执行，
    因此函数内部必须先读取最新记录再修改。
    入参说明：
        max_attempts (int): 最大尝试次数
        delay_secs (float): 首次重试前的等待秒数
        backoff_multiplier (float): 退避倍数
        exceptions (tuple): 需要重试的异常类型
    返回值说明：装饰后的函数，成功时返回原函数结果，放弃时返回 None
    """
    def decorator(func: Callable[..., T]) -> Callable[..., Optional[T]]:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Optional[T]:
            current_delay: float = delay_secs
            for attempt in range(1, max_attempts + 1):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    if attempt >= max_attempts:
                        LogUtils.error(f"状态更新 {func.__name__} 重试 {max_attempts} 次后仍然冲突，放弃本次更新: {e}")
                        return None
                    LogUtils.debug(f"状态更新 {func.__name__} 发生冲突（第 {attempt}/{max_attempts} 次），{current_delay}s 后重试")
                    time.sleep(current_delay)
                    current_delay *= backoff_multiplier
            return None

        return wrapper
    return decorator
