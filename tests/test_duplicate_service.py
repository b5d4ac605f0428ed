import pytest

from storage_hygiene.common.exceptions import ValidationError
from storage_hygiene.db.db_constants import DBConstants
from storage_hygiene.db.processor_manager import processor_manager
from storage_hygiene.duplicate.duplicate_service import DuplicateService
from storage_hygiene.duplicate.md5_checker import Md5Checker
from storage_hygiene.model.db.duplicate_group_db_model import DuplicateMemberDBModel
from storage_hygiene.setting.setting_service import settingService
from storage_hygiene.storage.base_asset_inventory import StorageBackend


def _run(service):
    service.start_scan()
    assert service.wait(timeout=30)


@pytest.fixture
def service(inventory):
    return DuplicateService(inventory)


class TestDuplicateScan:
    def test_two_identical_one_different(self, service, inventory):
        inventory.add("a.png", b"x" * 100)
        inventory.add("b.png", b"x" * 100)
        inventory.add("c.png", b"y" * 100)

        _run(service)

        groups = processor_manager.duplicate_group_processor.get_all_groups()
        assert len(groups) == 1
        assert sorted(groups[0].member_asset_ids) == ["a.png", "b.png"]
        assert groups[0].savable_bytes == 100
        assert groups[0].file_count == 2

        status = service.get_status()
        assert status.phase == DBConstants.ScanPhase.COMPLETED
        assert status.counters["total_count"] == 3
        assert status.counters["duplicate_group_count"] == 1
        assert status.counters["duplicate_file_count"] == 1
        assert status.counters["savable_size"] == 100

    def test_partition_by_content(self, service, inventory):
        settingService.get_config().scan.duplicate_scan_concurrency = 3
        contents = {"a": b"1", "b": b"2", "c": b"1", "d": b"2", "e": b"2", "f": b"3"}
        for name, data in contents.items():
            inventory.add(name, data * 50)

        _run(service)

        groups = processor_manager.duplicate_group_processor.get_all_groups()
        member_sets = [set(g.member_asset_ids) for g in groups]
        assert sorted(member_sets, key=len) == [{"a", "c"}, {"b", "d", "e"}]
        all_members = [m for g in groups for m in g.member_asset_ids]
        assert len(all_members) == len(set(all_members))

    def test_failed_asset_is_skipped(self, service, inventory):
        inventory.add("a.png", b"x" * 10)
        inventory.add("b.png", b"x" * 10)
        inventory.add("c.png", b"x" * 10)
        inventory.broken.add("c.png")

        _run(service)

        status = service.get_status()
        assert status.phase == DBConstants.ScanPhase.COMPLETED
        assert status.counters["failed_count"] == 1
        groups = processor_manager.duplicate_group_processor.get_all_groups()
        assert sorted(groups[0].member_asset_ids) == ["a.png", "b.png"]

    def test_slow_asset_times_out(self, service, inventory):
        settingService.get_config().scan.hash_timeout_seconds = 0.1
        inventory.add("a.png", b"x" * 10)
        inventory.add("b.png", b"x" * 10)
        inventory.add("slow.png", b"x" * 10 + b"z" * 90)
        inventory.slow.add("slow.png")

        _run(service)

        status = service.get_status()
        assert status.phase == DBConstants.ScanPhase.COMPLETED
        assert status.counters["total_count"] == 3
        assert status.counters["failed_count"] == 1
        assert status.counters["scanned_count"] == 2
        groups = processor_manager.duplicate_group_processor.get_all_groups()
        assert [sorted(g.member_asset_ids) for g in groups] == [["a.png", "b.png"]]

    def test_excluded_groups_and_backends(self, service, inventory):
        inventory.backends = [StorageBackend("local", True), StorageBackend("archive", True)]
        inventory.add("p1.png", b"x" * 10, group="private")
        inventory.add("p2.png", b"x" * 10, group="private")
        inventory.add("old1.png", b"y" * 10, backend="archive")
        inventory.add("old2.png", b"y" * 10, backend="archive")
        inventory.add("a.png", b"z" * 10)
        exclude = settingService.get_config().exclude
        exclude.exclude_groups = ["private"]
        exclude.exclude_backends = ["archive"]

        _run(service)

        assert processor_manager.duplicate_group_processor.get_all_groups() == []
        assert service.get_status().counters["total_count"] == 1

    def test_remote_backend_requires_opt_in(self, service, inventory):
        inventory.backends = [StorageBackend("local", True), StorageBackend("s3", False)]
        inventory.add("a.png", b"x" * 10)
        inventory.add("b.png", b"x" * 10, backend="s3")

        _run(service)
        assert processor_manager.duplicate_group_processor.get_all_groups() == []
        assert service.get_status().counters["total_count"] == 1

        settingService.get_config().scan.remote_storage_for_duplicate_scan = True
        _run(service)
        assert len(processor_manager.duplicate_group_processor.get_all_groups()) == 1

    def test_rescan_replaces_groups(self, service, inventory):
        inventory.add("a.png", b"x" * 10)
        inventory.add("b.png", b"x" * 10)
        _run(service)
        _run(service)
        assert processor_manager.duplicate_group_processor.get_group_count() == 1

    def test_invalid_algorithm_fails_pass(self, service, inventory):
        settingService.get_config().scan.hash_algorithm = "not-a-hash"
        inventory.add("a.png", b"x")

        _run(service)
        assert service.get_status().phase == DBConstants.ScanPhase.ERROR


class TestRecommendedKeep:
    def test_reference_count_wins(self):
        members = [
            DuplicateMemberDBModel(asset_id="a", reference_count=0, upload_time="2020-01-01 00:00:00", position=0),
            DuplicateMemberDBModel(asset_id="b", reference_count=2, upload_time="2023-01-01 00:00:00", position=1),
        ]
        assert Md5Checker.select_recommended_keep(members) == "b"

    def test_earlier_upload_time_on_tie(self):
        members = [
            DuplicateMemberDBModel(asset_id="a", reference_count=1, upload_time="2023-05-01 00:00:00", position=0),
            DuplicateMemberDBModel(asset_id="b", reference_count=1, upload_time="2021-05-01 00:00:00", position=1),
            DuplicateMemberDBModel(asset_id="c", reference_count=1, upload_time=None, position=2),
        ]
        assert Md5Checker.select_recommended_keep(members) == "b"

    def test_first_member_without_upload_times(self):
        members = [
            DuplicateMemberDBModel(asset_id="x", position=0),
            DuplicateMemberDBModel(asset_id="y", position=1),
        ]
        assert Md5Checker.select_recommended_keep(members) == "x"
        assert Md5Checker.select_recommended_keep([]) is None


class TestDuplicateCleanup:
    @pytest.fixture
    def scanned(self, service, inventory):
        inventory.add("a.png", b"x" * 100, upload_time="2020-01-01 00:00:00")
        inventory.add("b.png", b"x" * 100, upload_time="2021-01-01 00:00:00")
        inventory.add("c.png", b"x" * 100, upload_time="2022-01-01 00:00:00")
        _run(service)
        return service

    def _group(self):
        return processor_manager.duplicate_group_processor.get_all_groups()[0]

    def test_list_groups_without_reference_scan(self, scanned):
        page = scanned.list_groups(1, 10)
        assert page.total == 1
        group = page.list[0]
        assert group.recommended_keep_id == "a.png"
        assert [m.asset_id for m in group.members] == ["a.png", "b.png", "c.png"]
        assert all(m.reference_count == -1 for m in group.members)
        assert [m.recommended_keep for m in group.members] == [True, False, False]

    def test_delete_some_members(self, scanned, inventory):
        group = self._group()
        result = scanned.delete_duplicates(group.content_hash, ["b.png"])

        assert result.deleted_count == 1
        assert result.freed_size == 100
        assert inventory.deleted == ["b.png"]
        remaining = self._group()
        assert remaining.member_asset_ids == ["a.png", "c.png"]
        assert remaining.savable_bytes == 100

        logs = processor_manager.cleanup_log_processor.get_all()
        assert [(log.asset_id, log.reason) for log in logs] == [("b.png", DBConstants.CleanupReason.DUPLICATE)]
        assert scanned.get_status().counters["duplicate_file_count"] == 1

    def test_group_dissolves_below_two(self, scanned):
        group = self._group()
        scanned.delete_duplicates(group.content_hash, ["b.png", "c.png"])

        assert processor_manager.duplicate_group_processor.get_all_groups() == []
        assert scanned.get_status().counters["duplicate_group_count"] == 0

    def test_must_keep_one(self, scanned, inventory):
        group = self._group()
        with pytest.raises(ValidationError):
            scanned.delete_duplicates(group.content_hash, ["a.png", "b.png", "c.png"])
        assert inventory.deleted == []

    def test_validation(self, scanned):
        with pytest.raises(ValidationError):
            scanned.delete_duplicates(self._group().content_hash, [])
        with pytest.raises(ValidationError):
            scanned.delete_duplicates("0" * 32, ["a.png"])

    def test_clear_all(self, scanned):
        scanned.clear_all()
        assert processor_manager.duplicate_group_processor.get_group_count() == 0
        assert scanned.get_status().phase == DBConstants.ScanPhase.IDLE
