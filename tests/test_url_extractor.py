from storage_hygiene.common.utils import Utils
from storage_hygiene.reference.url_extractor import UrlExtractor


class TestTextExtraction:
    def test_markdown_image_with_title_is_relative(self):
        result = UrlExtractor.extract('![x](/upload/a.jpg "t")', False)
        assert result.relative_paths == {"/upload/a.jpg"}
        assert result.absolute_urls == set()

    def test_all_text_patterns(self):
        content = (
            "![a](/upload/a.png)\n"
            "[doc](https://files.example.com/doc.pdf)\n"
            "see https://cdn.example.com/img/c.jpg here\n"
            "raw path /upload/2024/d.webp end\n"
        )
        result = UrlExtractor.extract(content, False)
        assert result.relative_paths == {"/upload/a.png", "/upload/2024/d.webp"}
        assert result.absolute_urls == {"https://files.example.com/doc.pdf", "https://cdn.example.com/img/c.jpg"}

    def test_quoted_json_values(self):
        content = '{"logo": "https://example.com/logo.svg", "bg": "/upload/bg.jpg"}'
        result = UrlExtractor.extract(content, False)
        assert result.absolute_urls == {"https://example.com/logo.svg"}
        assert result.relative_paths == {"/upload/bg.jpg"}

    def test_percent_decoding(self):
        result = UrlExtractor.extract("/upload/%E5%9B%BE%E7%89%87.png", False)
        assert result.relative_paths == {"/upload/图片.png"}

    def test_invalid_escape_passes_through(self):
        assert Utils.decode_url("/upload/%FF.png") == "/upload/%FF.png"
        assert Utils.decode_url("/upload/%zz.png") == "/upload/%zz.png"

        result = UrlExtractor.extract("/upload/%FF.png /upload/%FE.png", False)
        assert result.relative_paths == {"/upload/%FF.png", "/upload/%FE.png"}

    def test_rejected_schemes(self):
        content = "[a](javascript:void.js) [b](mailto:someone@example.com) [c](#anchor) ![d](data:image/png;base64,AAAA)"
        result = UrlExtractor.extract(content, False)
        assert result.is_empty()

    def test_empty_content(self):
        assert UrlExtractor.extract(None, False).is_empty()
        assert UrlExtractor.extract("   ", True).is_empty()


class TestHtmlExtraction:
    def test_tags_and_styles(self):
        html = (
            '<p><img src="/upload/a.png"><a href="https://example.com/f.pdf">f</a>'
            '<div style="background: url(\'/upload/bg.jpg\')"></div>'
            '<video src="https://media.example.com/v.mp4"></video>'
            '<img src="data:image/png;base64,AAAA"><a href="#top">top</a>'
            '<a href="mailto:a@example.com">mail</a><img src="relative/x.png"></p>'
        )
        result = UrlExtractor.extract(html, True)
        assert result.relative_paths == {"/upload/a.png", "/upload/bg.jpg"}
        assert result.absolute_urls == {"https://example.com/f.pdf", "https://media.example.com/v.mp4"}

    def test_no_url_is_both_absolute_and_relative(self):
        html = '<img src="https://example.com/upload/a.png"><img src="/upload/a.png">'
        result = UrlExtractor.extract(html, True)
        assert result.absolute_urls.isdisjoint(result.relative_paths)
        for url in result.absolute_urls | result.relative_paths:
            assert UrlExtractor.is_valid_url(url)


class TestHelpers:
    def test_is_full_url(self):
        assert UrlExtractor.is_full_url("http://a.com/x.png")
        assert UrlExtractor.is_full_url("https://a.com/x.png")
        assert not UrlExtractor.is_full_url("/upload/x.png")
        assert not UrlExtractor.is_full_url(None)

    def test_extract_path(self):
        assert UrlExtractor.extract_path("https://a.com/upload/x.png?v=1#top") == "/upload/x.png"
        assert UrlExtractor.extract_path("/upload/x.png") == "/upload/x.png"

    def test_extract_field_value_normalizes_relative(self):
        assert UrlExtractor.extract_field_value("./upload/a.png").relative_paths == {"/upload/a.png"}
        assert UrlExtractor.extract_field_value("upload/a.png").relative_paths == {"/upload/a.png"}
        assert UrlExtractor.extract_field_value("../upload/a.png").is_empty()
        assert UrlExtractor.extract_field_value("https://a.com/b.png").absolute_urls == {"https://a.com/b.png"}
        assert UrlExtractor.extract_field_value("").is_empty()
