import io
import os
from typing import Dict, Set, Tuple

from PIL import Image

from storage_hygiene.common.log_utils import LogUtils
from storage_hygiene.setting.setting_models import BatchProcessingSettings
from storage_hygiene.transform.base_transformer import BaseTransformer, TransformResult, TransformStatus


class ImageTransformer(BaseTransformer):
    """
    用途：基于 Pillow 的图片转换器，支持格式转换、质量压缩以及按最大宽高等比缩放。
    """

    SUPPORTED_MEDIA_TYPES: Set[str] = {
        "image/jpeg", "image/png", "image/webp", "image/bmp", "image/gif", "image/tiff"
    }

    # 目标格式 -> (Pillow 格式名, MIME 类型, 扩展名)
    FORMATS: Dict[str, Tuple[str, str, str]] = {
        "webp": ("WEBP", "image/webp", ".webp"),
        "jpeg": ("JPEG", "image/jpeg", ".jpg"),
        "jpg": ("JPEG", "image/jpeg", ".jpg"),
        "png": ("PNG", "image/png", ".png"),
    }

    def is_enabled(self, config: BatchProcessingSettings) -> bool:
        return bool(config.format_conversion_enabled or config.resize_enabled)

    def is_supported(self, media_type: str) -> bool:
        return (media_type or "").lower() in self.SUPPORTED_MEDIA_TYPES

    def _resolve_output(self, img: Image.Image, config: BatchProcessingSettings) -> Tuple[str, str, str]:
        if config.format_conversion_enabled:
            target: Tuple[str, str, str] = self.FORMATS.get((config.target_format or "").lower())
            if target is None:
                raise ValueError(f"不支持的目标格式: {config.target_format}")
            return target
        # 仅缩放时保持原格式
        return self.FORMATS.get((img.format or "").lower(), self.FORMATS["png"])

    def process(self, data: bytes, filename: str, media_type: str,
                config: BatchProcessingSettings) -> TransformResult:
        """
        用途：转换单张图片。处理后体积没有变小时返回跳过，避免越处理越大。
        入参说明：
            data (bytes): 原始图片内容
            filename (str): 原文件名
            media_type (str): 原 MIME 类型
            config (BatchProcessingSettings): 批量处理配置
        返回值说明：TransformResult
        """
        if not self.is_enabled(config):
            return TransformResult.skipped("没有启用任何处理功能")
        if not self.is_supported(media_type):
            return TransformResult.skipped(f"不支持的文件类型: {media_type}")

        try:
            with Image.open(io.BytesIO(data)) as img:
                if getattr(img, "is_animated", False):
                    return TransformResult.skipped("暂不支持处理动图")

                pil_format, result_media_type, ext = self._resolve_output(img, config)
                work: Image.Image = img.copy()

                if config.resize_enabled and (work.width > config.max_width or work.height > config.max_height):
                    work.thumbnail((config.max_width, config.max_height))

                if pil_format == "JPEG" and work.mode not in ("RGB", "L"):
                    work = work.convert("RGB")

                buffer: io.BytesIO = io.BytesIO()
                if pil_format in ("JPEG", "WEBP"):
                    work.save(buffer, pil_format, quality=config.quality)
                else:
                    work.save(buffer, pil_format, optimize=True)
        except (OSError, ValueError) as e:
            LogUtils.error(f"图片处理失败: {filename}, 错误: {e}")
            return TransformResult.failed(f"图片处理失败: {e}")

        result_bytes: bytes = buffer.getvalue()
        if len(result_bytes) >= len(data):
            return TransformResult.skipped("处理后文件未变小")

        result_filename: str = os.path.splitext(filename)[0] + ext
        return TransformResult(
            status=TransformStatus.SUCCEEDED,
            result_bytes=result_bytes,
            result_filename=result_filename,
            result_media_type=result_media_type
        )
