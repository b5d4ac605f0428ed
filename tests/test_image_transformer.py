import io

from PIL import Image

from storage_hygiene.setting.setting_models import BatchProcessingSettings
from storage_hygiene.transform.base_transformer import TransformStatus
from storage_hygiene.transform.image_transformer import ImageTransformer


def _noise_png(width=200, height=200):
    img = Image.merge("RGB", [Image.effect_noise((width, height), 64) for _ in range(3)])
    buffer = io.BytesIO()
    img.save(buffer, "PNG")
    return buffer.getvalue()


class TestImageTransformer:
    def setup_method(self):
        self.transformer = ImageTransformer()

    def test_convert_to_jpeg(self):
        config = BatchProcessingSettings(target_format="jpeg", quality=70)
        data = _noise_png()

        result = self.transformer.process(data, "photo.png", "image/png", config)

        assert result.status == TransformStatus.SUCCEEDED
        assert result.result_filename == "photo.jpg"
        assert result.result_media_type == "image/jpeg"
        assert len(result.result_bytes) < len(data)
        with Image.open(io.BytesIO(result.result_bytes)) as img:
            assert img.format == "JPEG"

    def test_resize_keeps_aspect_ratio(self):
        config = BatchProcessingSettings(target_format="jpeg", resize_enabled=True, max_width=100, max_height=100)
        result = self.transformer.process(_noise_png(400, 200), "wide.png", "image/png", config)

        with Image.open(io.BytesIO(result.result_bytes)) as img:
            assert img.size == (100, 50)

    def test_not_smaller_is_skipped(self):
        img = Image.new("RGB", (8, 8), "white")
        buffer = io.BytesIO()
        img.save(buffer, "PNG")
        config = BatchProcessingSettings(target_format="jpeg")

        result = self.transformer.process(buffer.getvalue(), "tiny.png", "image/png", config)
        assert result.status == TransformStatus.SKIPPED
        assert result.message == "处理后文件未变小"

    def test_corrupt_data_fails(self):
        result = self.transformer.process(b"not an image", "bad.png", "image/png", BatchProcessingSettings())
        assert result.status == TransformStatus.FAILED

    def test_unsupported_and_disabled(self):
        result = self.transformer.process(b"%PDF", "doc.pdf", "application/pdf", BatchProcessingSettings())
        assert result.status == TransformStatus.SKIPPED

        disabled = BatchProcessingSettings(format_conversion_enabled=False, resize_enabled=False)
        assert not self.transformer.is_enabled(disabled)
        assert self.transformer.process(_noise_png(), "a.png", "image/png", disabled).status == \
            TransformStatus.SKIPPED

    def test_unknown_target_format_fails(self):
        config = BatchProcessingSettings(target_format="avif")
        result = self.transformer.process(_noise_png(20, 20), "a.png", "image/png", config)
        assert result.status == TransformStatus.FAILED
