import pytest

from storage_hygiene.common.exceptions import ValidationError
from storage_hygiene.db.db_constants import DBConstants
from storage_hygiene.reference.whitelist_service import WhitelistService


class TestWhitelistService:
    def test_exact_and_prefix(self):
        WhitelistService.add("https://cdn.example.com/a.png")
        WhitelistService.add("/upload/old/", "PREFIX", note="旧目录")

        assert WhitelistService.is_whitelisted("https://cdn.example.com/a.png")
        assert not WhitelistService.is_whitelisted("https://cdn.example.com/a.png?x=1")
        assert WhitelistService.is_whitelisted("/upload/old/2020/x.png")
        assert not WhitelistService.is_whitelisted("/upload/new/x.png")

        entry = WhitelistService.find_match("/upload/old/y.png")
        assert entry.match_mode == DBConstants.MatchMode.PREFIX
        assert entry.note == "旧目录"

    def test_add_same_pattern_updates(self):
        WhitelistService.add("/upload/a.png", note="first")
        entry = WhitelistService.add("/upload/a.png", "prefix", note="second")

        entries = WhitelistService.list_entries()
        assert len(entries) == 1
        assert entry.match_mode == "prefix"
        assert entry.note == "second"

    def test_add_validation(self):
        with pytest.raises(ValidationError):
            WhitelistService.add("  ")
        with pytest.raises(ValidationError):
            WhitelistService.add("/upload/a.png", "regex")

    def test_batch_add_skips_blank_and_duplicates(self):
        count = WhitelistService.batch_add(["/a", " /a ", "", None, "/b"], note="批量")
        assert count == 2
        assert sorted(e.url_pattern for e in WhitelistService.list_entries()) == ["/a", "/b"]

        with pytest.raises(ValidationError):
            WhitelistService.batch_add(["", "  "])

    def test_search_and_delete(self):
        WhitelistService.add("https://CDN.example.com/x.png")
        WhitelistService.add("/upload/y.png", note="Legacy banner")

        assert [e.url_pattern for e in WhitelistService.list_entries("cdn")] == ["https://CDN.example.com/x.png"]
        assert [e.url_pattern for e in WhitelistService.list_entries("legacy")] == ["/upload/y.png"]

        entry = WhitelistService.list_entries("cdn")[0]
        WhitelistService.delete(entry.id)
        assert len(WhitelistService.list_entries()) == 1
        with pytest.raises(ValidationError):
            WhitelistService.delete(entry.id)

    def test_preloaded_entries_are_used(self):
        WhitelistService.add("/upload/a.png")
        entries = WhitelistService.list_entries()
        WhitelistService.clear_all()

        assert WhitelistService.is_whitelisted("/upload/a.png", entries)
        assert not WhitelistService.is_whitelisted("/upload/a.png")
