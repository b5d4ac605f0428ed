import pytest
import schedule

from config import GlobalConfig
from storage_hygiene.common.heartbeat_service import HeartbeatService
from storage_hygiene.db.processor_manager import processor_manager
from storage_hygiene.main import app
from storage_hygiene.model.content_item import ContentItem
from storage_hygiene.service_manager import service_manager
from storage_hygiene.source.base_content_source import InMemoryContentSource
from storage_hygiene.source.content_source_registry import ContentKind
from storage_hygiene.system.log_cleanup_service import LogCleanupService


def _post(source_id, raw_text):
    return ContentItem(source_id=source_id, title=f"文章 {source_id}", navigable_url=f"/archives/{source_id}",
                       raw_text=raw_text)


@pytest.fixture
def services(inventory, registry):
    return service_manager.configure(inventory=inventory, registry=registry)


@pytest.fixture
def client(services):
    app.config['TESTING'] = True
    with app.test_client() as client:
        yield client


class TestReferenceRoutes:
    def test_scan_then_list(self, client, services):
        services.inventory.add("a.png", b"a" * 10)
        services.inventory.add("b.png", b"b" * 10)
        services.registry.register(InMemoryContentSource(ContentKind.POST, "Post", [
            _post("1", raw_text="/upload/a.png /upload/gone.png"),
        ]))

        resp = client.post('/api/reference/scan')
        assert resp.status_code == 200
        assert services.reference_service.wait(timeout=30)

        body = client.get('/api/reference/status').get_json()
        assert body["status"] == "success"
        assert body["data"]["phase"] == "COMPLETED"

        body = client.get('/api/reference/list?filter=unreferenced').get_json()
        assert [i["asset_id"] for i in body["data"]["list"]] == ["b.png"]

        body = client.get('/api/broken_link/list').get_json()
        assert [i["url"] for i in body["data"]["list"]] == ["/upload/gone.png"]

    def test_second_scan_conflicts(self, client, services):
        status = services.reference_service.get_status()
        status.phase = "SCANNING"
        status.start_time = "2999-01-01 00:00:00"
        processor_manager.scan_status_processor.update(status)

        resp = client.post('/api/reference/scan')
        assert resp.status_code == 409
        assert resp.get_json()["status"] == "error"

    def test_detail_missing(self, client):
        resp = client.get('/api/reference/detail?asset_id=nope')
        assert resp.status_code == 400

    def test_delete_requires_ids(self, client):
        resp = client.post('/api/reference/delete_unreferenced', json={"asset_ids": []})
        assert resp.status_code == 400


class TestBatchRoutes:
    def test_create_rejects_empty(self, client):
        resp = client.post('/api/batch/create', json={"asset_ids": []})
        assert resp.status_code == 400
        assert resp.get_json()["message"] == "附件列表不能为空"

    def test_cancel_without_task(self, client):
        assert client.post('/api/batch/cancel').status_code == 400

    def test_status_and_settings(self, client):
        body = client.get('/api/batch/status').get_json()
        assert body["data"]["phase"] == "IDLE"

        body = client.get('/api/batch/settings').get_json()
        assert body["data"]["capability_enabled"] is True


class TestWhitelistRoutes:
    def test_add_check_delete(self, client):
        resp = client.post('/api/whitelist/add', json={"url_pattern": "/upload/old/", "match_mode": "prefix"})
        entry = resp.get_json()["data"]

        body = client.get('/api/whitelist/check?url=/upload/old/a.png').get_json()
        assert body["data"]["whitelisted"] is True
        assert body["data"]["entry"]["id"] == entry["id"]

        assert client.post('/api/whitelist/delete', json={"id": "x"}).status_code == 400
        assert client.post('/api/whitelist/delete', json={"id": entry["id"]}).status_code == 200
        assert client.get('/api/whitelist/list').get_json()["data"]["total"] == 0

    def test_check_requires_url(self, client):
        assert client.get('/api/whitelist/check').status_code == 400


class TestDuplicateRoutes:
    def test_scan_list_delete(self, client, services):
        services.inventory.add("a.png", b"x" * 10)
        services.inventory.add("b.png", b"x" * 10)

        client.post('/api/duplicate/scan')
        assert services.duplicate_service.wait(timeout=30)

        body = client.get('/api/duplicate/list').get_json()
        group = body["data"]["list"][0]
        assert group["recommended_keep_id"] == "a.png"

        resp = client.post('/api/duplicate/delete', json={
            "content_hash": group["content_hash"], "asset_ids": ["b.png"], "operator": "admin"
        })
        assert resp.status_code == 200
        assert resp.get_json()["data"]["deleted_count"] == 1

        logs = client.get('/api/system/cleanup_logs').get_json()["data"]["list"]
        assert [(log["asset_id"], log["operator"]) for log in logs] == [("b.png", "admin")]


class TestSystemRoutes:
    def teardown_method(self):
        schedule.clear(LogCleanupService.SCHEDULE_TAG)
        HeartbeatService.unregister_task(LogCleanupService.TASK_NAME)

    def test_version(self, client):
        body = client.get('/api/system/version').get_json()
        assert body["data"]["version"] == GlobalConfig.APP_VERSION

    def test_update_settings(self, client):
        resp = client.post('/api/system/settings/update', json={
            "scan": {"duplicate_scan_concurrency": 8},
            "log": {"log_cleanup_time": "04:00"},
        })
        assert resp.status_code == 200
        assert resp.get_json()["data"]["scan"]["duplicate_scan_concurrency"] == 8
        assert LogCleanupService.current_schedule() == "04:00"

        body = client.get('/api/system/settings/get').get_json()
        assert body["data"]["log"]["log_cleanup_time"] == "04:00"

    def test_update_settings_without_sections(self, client):
        resp = client.post('/api/system/settings/update', json={"unknown": 1})
        assert resp.status_code == 400

    def test_unknown_api(self, client):
        assert client.get('/api/nope').status_code == 404
