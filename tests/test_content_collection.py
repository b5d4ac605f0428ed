import json

from storage_hygiene.model.content_item import ContentItem
from storage_hygiene.model.source_ref import SourceRef
from storage_hygiene.reference.content_collector import ContentCollector
from storage_hygiene.reference.url_extractor import ExtractedUrls
from storage_hygiene.reference.url_index import UrlIndex
from storage_hygiene.setting.setting_models import ContentScanSettings
from storage_hygiene.source.base_content_source import InMemoryContentSource
from storage_hygiene.source.content_source_registry import ContentKind, ContentSourceRegistry
from storage_hygiene.source.json_file_content_source import JsonFileContentSource


def _kinds(index, url):
    return sorted(ref.reference_kind for ref in index.relative_map.get(url, set()) | index.absolute_map.get(url, set()))


class TestContentCollector:
    def test_moment_media_and_user_avatar(self):
        index = UrlIndex()
        collector = ContentCollector(index)
        collector.collect(InMemoryContentSource(ContentKind.MOMENT, "Moment", [
            ContentItem(source_id="m1", raw_text="hi /upload/m.png",
                        structured_fields={"medium": [{"url": "/upload/v.mp4"}, "junk"]}),
        ]))
        collector.collect(InMemoryContentSource(ContentKind.USER, "User", [
            ContentItem(source_id="u1", structured_fields={"avatar": "https://cdn.example.com/me.jpg"}),
        ]))

        assert _kinds(index, "/upload/m.png") == ["content"]
        assert _kinds(index, "/upload/v.mp4") == ["media"]
        assert _kinds(index, "https://cdn.example.com/me.jpg") == ["avatar"]
        assert collector.scanned_count == 2

    def test_photo_cover_same_as_url_counted_once(self):
        index = UrlIndex()
        ContentCollector(index).collect(InMemoryContentSource(ContentKind.PHOTO, "Photo", [
            ContentItem(source_id="p1", structured_fields={"url": "/upload/p.jpg", "cover": "/upload/p.jpg"}),
        ]))
        assert _kinds(index, "/upload/p.jpg") == ["content"]

    def test_config_groups(self):
        index = UrlIndex()
        ContentCollector(index).collect(InMemoryContentSource(ContentKind.THEME_SETTING, "ThemeSetting", [
            ContentItem(
                source_id="theme-cfg",
                navigable_url="/console/theme/settings?tab={group}",
                owner_setting_id="theme-earth",
                structured_fields={
                    "basic": json.dumps({"logo": "/upload/logo.png", "count": 3, "nested": {"bg": "/upload/bg.jpg"}}),
                    "footer": "not json /upload/footer.png",
                    "empty": None,
                }
            ),
        ]))

        logo_refs = index.relative_map["/upload/logo.png"]
        ref = next(iter(logo_refs))
        assert ref.reference_kind == "basic"
        assert ref.owner_setting_id == "theme-earth"
        assert ref.navigable_url == "/console/theme/settings?tab=basic"
        assert "/upload/bg.jpg" in index.relative_map
        assert _kinds(index, "/upload/footer.png") == ["footer"]

    def test_failing_item_leaves_no_partial_result(self):
        index = UrlIndex()
        collector = ContentCollector(index)
        collector.collect(InMemoryContentSource(ContentKind.POST, "Post", [
            ContentItem(source_id="bad", raw_text="/upload/partial.png", structured_fields={"cover": 42}),
            ContentItem(source_id="ok", raw_text="/upload/ok.png"),
        ]))

        assert "/upload/partial.png" not in index.relative_map
        assert "/upload/ok.png" in index.relative_map
        assert collector.failed_count == 1
        assert collector.scanned_count == 1


class TestUrlIndex:
    def _ref(self, source_id="1"):
        return SourceRef(source_type="Post", source_id=source_id)

    def test_literal_absolute_consumed_through_relative(self):
        index = UrlIndex("https://blog.example.com")
        urls = ExtractedUrls()
        urls.absolute_urls.add("https://blog.example.com/upload/a.png")
        index.add(urls, self._ref("1"))
        index.add_relative("/upload/a.png", self._ref("2"))

        refs = index.match("/upload/a.png")

        assert {r.source_id for r in refs} == {"1", "2"}
        assert index.unresolved() == []
        assert index.checked_count() == 2

    def test_unresolved_sorted_and_reported_once(self):
        index = UrlIndex("https://blog.example.com")
        index.add_relative("/upload/z.png", self._ref())
        index.add_absolute("https://other.example.com/a.png", self._ref())

        assert [url for url, _ in index.unresolved()] == ["/upload/z.png", "https://other.example.com/a.png"]

    def test_percent_encoded_access_url(self):
        index = UrlIndex()
        index.add_relative("/upload/图片.png", self._ref())
        assert index.match("/upload/%E5%9B%BE%E7%89%87.png")
        assert index.unresolved() == []


class TestContentSourceRegistry:
    def test_resolve_respects_toggles_and_order(self):
        registry = ContentSourceRegistry()
        for kind in (ContentKind.USER, ContentKind.COMMENT, ContentKind.POST, "custom"):
            registry.register(InMemoryContentSource(kind, kind))

        kinds = [s.content_kind for s in registry.resolve(ContentScanSettings())]
        assert kinds == [ContentKind.POST, ContentKind.USER, "custom"]

        kinds = [s.content_kind for s in registry.resolve(ContentScanSettings(scan_posts=False, scan_comments=True))]
        assert kinds == [ContentKind.COMMENT, ContentKind.USER, "custom"]

    def test_load_directory(self, tmp_path):
        (tmp_path / "post.json").write_text(json.dumps([
            {"source_id": 1, "title": "Hello", "raw_text": "/upload/a.png", "unknown": "ignored"},
            {"title": "no id"},
        ]), encoding="utf-8")
        (tmp_path / "readme.md").write_text("skip", encoding="utf-8")

        registry = ContentSourceRegistry()
        assert registry.load_directory(str(tmp_path)) == 1
        assert registry.load_directory(str(tmp_path / "missing")) == 0

        source = registry.get(ContentKind.POST)
        assert isinstance(source, JsonFileContentSource)
        assert source.source_type == "Post"
        items = list(source.list_all())
        assert [(i.source_id, i.raw_text) for i in items] == [("1", "/upload/a.png")]
