"""
Tests for the HTTP API.
"""

from autotranslate.ai.exceptions import PermanentTranslationError
from autotranslate.tagging.fingerprint import fingerprint
from autotranslate.tagging.markers import format_marker
from autotranslate.translation.store import TranslationRecord
from autotranslate.web import create_app


class TestHealth:

    def test_health(self, client):
        response = client.get('/health')
        assert response.status_code == 200
        assert response.json["status"] == "ok"
        assert response.json["worker_running"] is False

    def test_unknown_route_is_json(self, client):
        response = client.get('/api/nothing-here')
        assert response.status_code == 404
        assert "error" in response.json


class TestTasks:
    """Tests for /api/tasks"""

    def test_queue_and_poll(self, client, services, add_source):
        add_source("Hello")
        add_source("World")

        response = client.post('/api/tasks', json={"target_lang": "de"})
        assert response.status_code == 202
        task_id = response.json["task_id"]

        response = client.get(f'/api/tasks/{task_id}')
        assert response.status_code == 200
        assert response.json == {"status": "queued", "percentage": 0}

        assert services.worker.run_pending() == 1

        response = client.get(f'/api/tasks/{task_id}')
        assert response.json == {"status": "completed", "percentage": 100}

    def test_permanent_failure_is_visible(self, client, services, provider, add_source):
        add_source("Hello")
        provider.default_error = PermanentTranslationError("quota", code="quota_exceeded")

        task_id = client.post('/api/tasks', json={"target_lang": "fr"}).json["task_id"]
        services.worker.run_pending()

        assert client.get(f'/api/tasks/{task_id}').json["status"] == "failed"

    def test_target_lang_required(self, client):
        response = client.post('/api/tasks', json={})
        assert response.status_code == 400

    def test_base_language_rejected(self, client):
        response = client.post('/api/tasks', json={"target_lang": "en"})
        assert response.status_code == 400

    def test_malformed_bodies(self, client):
        assert client.post('/api/tasks', json={"target_lang": 5}).status_code == 400
        assert client.post('/api/tasks', json=["de"]).status_code == 400
        assert client.post('/api/render', json=["Hello"]).status_code == 400
        assert client.post('/api/tagging/run', json=[1]).status_code == 400
        assert client.post('/api/scopes/course/1/deleted', json=[1]).status_code == 400

    def test_invalid_scope(self, client):
        response = client.post('/api/tasks', json={"target_lang": "de", "scope_id": "abc"})
        assert response.status_code == 400

    def test_unknown_task(self, client):
        response = client.get('/api/tasks/does-not-exist')
        assert response.status_code == 404

    def test_unconfigured_provider(self, app_db, host_db):
        app = create_app(config_overrides={"host_database": str(host_db.path)}, start_background=False)
        response = app.test_client().post('/api/tasks', json={"target_lang": "de"})
        assert response.status_code == 400
        assert response.json["code"] == "provider_config_missing"


class TestTranslations:
    """Tests for /api/translations and /api/render"""

    def test_get_translation(self, client, store, add_source):
        identifier = add_source("Hello")
        store.upsert(TranslationRecord(hash=identifier, lang="de", text="Hallo"))

        response = client.get(f'/api/translations/{identifier}/de')
        assert response.status_code == 200
        assert response.json["text"] == "Hallo"
        assert response.json["is_human_edited"] is False

    def test_get_missing_translation(self, client, add_source):
        identifier = add_source("Hello")
        assert client.get(f'/api/translations/{identifier}/de').status_code == 404

    def test_human_edit(self, client, services, add_source):
        identifier = add_source("Hello")

        response = client.put(f'/api/translations/{identifier}/de', json={"text": "Hallo!"})
        assert response.status_code == 200
        assert response.json["is_human_edited"] is True

        # A later fetch leaves the edit alone
        client.post('/api/tasks', json={"target_lang": "de"})
        services.worker.run_pending()
        assert client.get(f'/api/translations/{identifier}/de').json["text"] == "Hallo!"

    def test_human_edit_validation(self, client, add_source):
        identifier = add_source("Hello")
        assert client.put(f'/api/translations/{identifier}/de', json={"text": ""}).status_code == 400
        assert client.put(f'/api/translations/{fingerprint("nope")}/de', json={"text": "x"}).status_code == 404

    def test_render(self, client, store, add_source):
        identifier = add_source("Hello")
        store.upsert(TranslationRecord(hash=identifier, lang="es", text="Hola"))

        response = client.post('/api/render', json={"text": "Hello" + format_marker(identifier), "lang": "es"})
        assert response.status_code == 200
        assert response.json == {"text": "Hola"}

    def test_render_requires_lang(self, client):
        assert client.post('/api/render', json={"text": "Hello"}).status_code == 400


class TestScopesAndTagging:

    def test_course_deleted(self, client, store, add_source):
        add_source("Only in one", 1)
        shared = add_source("Shared", 1, 2)

        response = client.post('/api/scopes/course/1/deleted')
        assert response.status_code == 200
        assert response.json["mappings_removed"] == 2
        assert response.json["records"] == 1
        assert store.get_source_text(shared) == "Shared"

    def test_module_deleted_requires_course(self, client):
        assert client.post('/api/scopes/module/3/deleted', json={}).status_code == 400

    def test_module_deleted_with_unreadable_host(self, client, store, host_db, add_source):
        identifier = add_source("Kept", 7)
        host_db.path.unlink()

        response = client.post('/api/scopes/module/3/deleted', json={"course_id": 7})

        assert response.status_code == 503
        assert response.json["code"] == "host_unavailable"
        assert store.list_scope_hashes(7) == [identifier]

    def test_run_tagging(self, client, host_db):
        course_id = host_db.insert("course", fullname="Welcome to the course", shortname="", summary="")

        response = client.post('/api/tagging/run', json={})
        assert response.status_code == 200
        assert response.json["tagged"] == 1
        assert host_db.get("course", course_id, "fullname").endswith(
            format_marker(fingerprint("Welcome to the course"))
        )

        response = client.post('/api/tagging/run', json={"scope_id": course_id})
        assert response.json["tagged"] == 0
        assert response.json["unchanged"] == 1

    def test_run_tagging_bad_scope(self, client):
        assert client.post('/api/tagging/run', json={"scope_id": "x"}).status_code == 400
