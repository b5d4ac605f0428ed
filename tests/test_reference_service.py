import pytest

from storage_hygiene.common.exceptions import StateConflictError, ValidationError
from storage_hygiene.db.db_constants import DBConstants
from storage_hygiene.db.processor_manager import processor_manager
from storage_hygiene.model.content_item import ContentItem
from storage_hygiene.reference.broken_link_service import BrokenLinkService
from storage_hygiene.reference.reference_service import ReferenceFilter, ReferenceService
from storage_hygiene.reference.whitelist_service import WhitelistService
from storage_hygiene.setting.setting_service import settingService
from storage_hygiene.source.base_content_source import InMemoryContentSource
from storage_hygiene.source.content_source_registry import ContentKind


def _post(source_id, raw_text=None, rendered_html=None, cover=None, title=None):
    return ContentItem(
        source_id=source_id,
        title=title or f"文章 {source_id}",
        navigable_url=f"/archives/{source_id}",
        rendered_html=rendered_html,
        raw_text=raw_text,
        structured_fields={"cover": cover} if cover else {}
    )


def _run(service):
    service.start_scan()
    assert service.wait(timeout=30)


@pytest.fixture
def service(inventory, registry):
    return ReferenceService(inventory, registry)


class TestReferenceScan:
    def test_counts_and_records(self, service, inventory, registry):
        inventory.add("a.png", b"a" * 10)
        inventory.add("b.png", b"b" * 20)
        registry.register(InMemoryContentSource(ContentKind.POST, "Post", [
            _post("1", raw_text="![a](/upload/a.png)", cover="/upload/a.png"),
            _post("2", rendered_html='<img src="/upload/missing.png">'),
        ]))

        _run(service)

        status = service.get_status()
        assert status.phase == DBConstants.ScanPhase.COMPLETED
        assert status.counters["total_attachments"] == 2
        assert status.counters["referenced_count"] == 1
        assert status.counters["unreferenced_count"] == 1
        assert status.counters["unreferenced_size"] == 20

        records = {r.asset_id: r for r in processor_manager.reference_record_processor.get_all()}
        assert set(records) == {"a.png", "b.png"}
        assert records["b.png"].reference_count == 0
        kinds = sorted(s.reference_kind for s in records["a.png"].sources)
        assert kinds == ["content", "cover"]

        broken = processor_manager.broken_link_processor.get_all()
        assert [b.url for b in broken] == ["/upload/missing.png"]
        assert broken[0].sources[0].source_id == "2"

        broken_status = processor_manager.scan_status_processor.get(DBConstants.ScanType.BROKEN_LINK)
        assert broken_status.phase == DBConstants.ScanPhase.COMPLETED
        assert broken_status.counters["broken_link_count"] == 1
        assert broken_status.counters["checked_link_count"] == 2

    def test_absolute_reference_matches_relative_asset(self, service, inventory, registry):
        settingService.get_config().site.external_base_url = "https://blog.example.com"
        inventory.add("a.png", b"a")
        registry.register(InMemoryContentSource(ContentKind.POST, "Post", [
            _post("1", raw_text="https://blog.example.com/upload/a.png"),
            _post("2", raw_text="/upload/a.png"),
        ]))

        _run(service)

        record = processor_manager.reference_record_processor.get_by_asset_id("a.png")
        assert record.reference_count == 2
        assert processor_manager.broken_link_processor.get_all() == []

    def test_scan_is_idempotent(self, service, inventory, registry):
        inventory.add("a.png", b"a")
        inventory.add("b.png", b"b")
        registry.register(InMemoryContentSource(ContentKind.POST, "Post", [
            _post("1", raw_text="![a](/upload/a.png) https://cdn.example.com/gone.jpg"),
            _post("2", raw_text="[b](/upload/b.png) /upload/missing.png"),
        ]))

        def snapshot():
            refs = sorted(
                (r.asset_id, r.reference_count, tuple(r.sources))
                for r in processor_manager.reference_record_processor.get_all()
            )
            links = sorted((b.url, tuple(b.sources)) for b in processor_manager.broken_link_processor.get_all())
            return refs, links

        _run(service)
        first = snapshot()
        _run(service)
        assert snapshot() == first
        assert len(first[1]) == 2

    def test_every_extracted_url_has_exactly_one_outcome(self, service, inventory, registry):
        inventory.add("a.png", b"a")
        WhitelistService.add("https://cdn.example.com/", "prefix")
        registry.register(InMemoryContentSource(ContentKind.POST, "Post", [
            _post("1", raw_text="/upload/a.png https://cdn.example.com/x.jpg /upload/b.png"),
        ]))

        _run(service)

        broken_urls = [b.url for b in processor_manager.broken_link_processor.get_all()]
        assert broken_urls == ["/upload/b.png"]
        record = processor_manager.reference_record_processor.get_by_asset_id("a.png")
        assert record.reference_count == 1

    def test_whitelist_prefix_scenario(self, service, registry):
        WhitelistService.add("/upload/old/", "prefix")
        registry.register(InMemoryContentSource(ContentKind.POST, "Post", [
            _post("1", raw_text="/upload/old/x.png /upload/new/x.png"),
        ]))

        _run(service)

        assert [b.url for b in processor_manager.broken_link_processor.get_all()] == ["/upload/new/x.png"]

    def test_excluded_group_is_not_enumerated(self, service, inventory):
        settingService.get_config().exclude.exclude_groups = ["private"]
        inventory.add("a.png", b"a", group="private")
        inventory.add("b.png", b"b")

        _run(service)

        assert [r.asset_id for r in processor_manager.reference_record_processor.get_all()] == ["b.png"]

    def test_failed_item_contributes_nothing(self, service, inventory, registry):
        class BrokenItems(InMemoryContentSource):
            def list_all(self):
                return [_post("1", raw_text="/upload/a.png"), _post("2", cover=object())]

        inventory.add("a.png", b"a")
        registry.register(BrokenItems(ContentKind.POST, "Post"))

        _run(service)

        assert service.get_status().phase == DBConstants.ScanPhase.COMPLETED
        assert processor_manager.reference_record_processor.get_by_asset_id("a.png").reference_count == 1

    def test_pass_error_sets_error_phase(self, service, inventory):
        def explode(asset_filter=None):
            raise RuntimeError("清单不可用")

        inventory.list_all = explode
        _run(service)

        status = service.get_status()
        assert status.phase == DBConstants.ScanPhase.ERROR
        assert "清单不可用" in status.error_message


class TestScanLifecycle:
    def test_rejects_while_scanning(self, service):
        status = processor_manager.scan_status_processor.get_or_create(DBConstants.ScanType.REFERENCE)
        status.phase = DBConstants.ScanPhase.SCANNING
        status.start_time = "2999-01-01 00:00:00"
        processor_manager.scan_status_processor.update(status)

        with pytest.raises(StateConflictError):
            service.start_scan()

    def test_stuck_scan_is_superseded(self, service):
        status = processor_manager.scan_status_processor.get_or_create(DBConstants.ScanType.REFERENCE)
        status.phase = DBConstants.ScanPhase.SCANNING
        status.start_time = "2000-01-01 00:00:00"
        processor_manager.scan_status_processor.update(status)

        _run(service)
        assert service.get_status().phase == DBConstants.ScanPhase.COMPLETED


class TestReferenceQueries:
    @pytest.fixture
    def scanned(self, service, inventory, registry):
        inventory.add("a.png", b"a" * 5, display_name="Alpha.png")
        inventory.add("b.png", b"b" * 50, display_name="beta.png")
        inventory.add("c.png", b"c" * 500, display_name="gamma.png")
        registry.register(InMemoryContentSource(ContentKind.POST, "Post", [
            _post("1", raw_text="/upload/a.png /upload/b.png"),
            _post("2", raw_text="/upload/a.png"),
        ]))
        _run(service)
        return service

    def test_filter_and_sort(self, scanned):
        result = scanned.list_references(1, 10, ReferenceFilter.REFERENCED, sort="reference_count,desc")
        assert [i.asset_id for i in result.list] == ["a.png", "b.png"]

        result = scanned.list_references(1, 10, ReferenceFilter.UNREFERENCED)
        assert [i.asset_id for i in result.list] == ["c.png"]

    def test_keyword_and_paging(self, scanned):
        result = scanned.list_references(1, 10, keyword="ALPHA")
        assert [i.asset_id for i in result.list] == ["a.png"]

        result = scanned.list_references(2, 2, sort="size,asc")
        assert result.total == 3
        assert [i.asset_id for i in result.list] == ["c.png"]

    def test_non_positive_limit_is_clamped(self, scanned):
        result = scanned.list_references(1, -5, sort="size,asc")
        assert result.limit == 1
        assert [i.asset_id for i in result.list] == ["a.png"]

        result = scanned.list_references(2, 0, sort="size,asc")
        assert [i.asset_id for i in result.list] == ["b.png"]

    def test_detail(self, scanned):
        item = scanned.get_reference("a.png")
        assert item.reference_count == 2
        with pytest.raises(ValidationError):
            scanned.get_reference("nope.png")

    def test_delete_unreferenced(self, scanned, inventory):
        inventory.undeletable.add("b.png")
        result = scanned.delete_unreferenced(["c.png", "b.png", "missing.png"])

        assert result.deleted_count == 1
        assert result.failed_count == 2
        assert result.freed_size == 500
        assert inventory.deleted == ["c.png"]
        assert processor_manager.reference_record_processor.get_by_asset_id("c.png") is None

        logs = processor_manager.cleanup_log_processor.get_all()
        assert sorted(log.asset_id for log in logs) == ["b.png", "c.png"]
        assert all(log.reason == DBConstants.CleanupReason.UNREFERENCED for log in logs)

        counters = scanned.get_status().counters
        assert counters["unreferenced_count"] == 0
        assert counters["unreferenced_size"] == 0

    def test_delete_unreferenced_requires_ids(self, scanned):
        with pytest.raises(ValidationError):
            scanned.delete_unreferenced([])

    def test_clear_all(self, scanned):
        scanned.clear_all()
        assert processor_manager.reference_record_processor.get_all() == []
        assert scanned.get_status().phase == DBConstants.ScanPhase.IDLE


class TestBrokenLinkService:
    def test_scan_and_whitelist(self, service, registry):
        registry.register(InMemoryContentSource(ContentKind.POST, "Post", [
            _post("1", raw_text="/upload/x.png /upload/y.png"),
        ]))
        broken_service = BrokenLinkService(service)

        broken_service.start_scan()
        assert service.wait(timeout=30)
        assert broken_service.get_status().counters["broken_link_count"] == 2
        assert broken_service.get_source_types() == ["Post"]

        removed = broken_service.add_to_whitelist(["/upload/x.png"])
        assert removed == 1
        assert broken_service.get_status().counters["broken_link_count"] == 1
        assert WhitelistService.is_whitelisted("/upload/x.png")

        page = broken_service.list_broken_links(1, 10, keyword="y.png")
        assert [b.url for b in page.list] == ["/upload/y.png"]

    def test_conflict_marks_broken_link_error(self, service):
        status = processor_manager.scan_status_processor.get_or_create(DBConstants.ScanType.REFERENCE)
        status.phase = DBConstants.ScanPhase.SCANNING
        status.start_time = "2999-01-01 00:00:00"
        processor_manager.scan_status_processor.update(status)

        with pytest.raises(StateConflictError):
            BrokenLinkService(service).start_scan()
        assert processor_manager.scan_status_processor.get(DBConstants.ScanType.BROKEN_LINK).phase == \
            DBConstants.ScanPhase.ERROR
