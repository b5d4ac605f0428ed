from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from storage_hygiene.setting.setting_models import BatchProcessingSettings


class TransformStatus:
    SUCCEEDED = "SUCCEEDED"
    SKIPPED = "SKIPPED"
    FAILED = "FAILED"


@dataclass
class TransformResult:
    """
    用途：单个附件的转换结果
    入参说明：
        status (str): 见 TransformStatus
        result_bytes (Optional[bytes]): 转换后的内容，仅成功时有值
        result_filename (Optional[str]): 转换后的文件名
        result_media_type (Optional[str]): 转换后的 MIME 类型
        message (str): 跳过或失败的原因
    """
    status: str
    result_bytes: Optional[bytes] = None
    result_filename: Optional[str] = None
    result_media_type: Optional[str] = None
    message: str = ""

    @staticmethod
    def skipped(message: str) -> 'TransformResult':
        return TransformResult(status=TransformStatus.SKIPPED, message=message)

    @staticmethod
    def failed(message: str) -> 'TransformResult':
        return TransformResult(status=TransformStatus.FAILED, message=message)


class BaseTransformer(ABC):
    """
    用途：批量处理使用的转换器基类，定义能力检查与单文件转换接口。
    """

    @abstractmethod
    def is_enabled(self, config: BatchProcessingSettings) -> bool:
        """
        用途：判断当前配置下是否启用了至少一项处理能力。
        入参说明：config (BatchProcessingSettings) - 批量处理配置
        返回值说明：bool
        """

    @abstractmethod
    def is_supported(self, media_type: str) -> bool:
        """
        用途：查询转换器是否能处理指定 MIME 类型。
        入参说明：media_type (str) - MIME 类型，如 image/png
        返回值说明：bool
        """

    @abstractmethod
    def process(self, data: bytes, filename: str, media_type: str,
                config: BatchProcessingSettings) -> TransformResult:
        """
        用途：转换单个附件内容，不应抛出异常，失败通过 TransformResult.failed 返回。
        入参说明：
            data (bytes): 原始内容
            filename (str): 原文件名
            media_type (str): 原 MIME 类型
            config (BatchProcessingSettings): 批量处理配置
        返回值说明：TransformResult
        """
