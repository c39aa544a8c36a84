"""Tests for the person API routes.

Every test builds its own app through the factory, so repository, cache and
rate limiter state never leak between tests.
"""

import pytest
from fastapi.testclient import TestClient

from minimal_api.core.app_factory import create_app


@pytest.fixture
def settings(make_settings):
    return make_settings(rate_limit_enabled=False)


@pytest.fixture
def client(settings) -> TestClient:
    return TestClient(create_app(settings))


class TestReadPersons:
    def test_list_uses_camel_case_keys(self, client: TestClient):
        response = client.get("/person")

        assert response.status_code == 200
        persons = response.json()
        assert len(persons) == 6
        assert persons[0] == {"id": 1, "name": "Poornima", "hasAPetUnicorn": True}

    def test_get_by_id(self, client: TestClient):
        response = client.get("/person/4")

        assert response.status_code == 200
        assert response.json() == {"id": 4, "name": "Kavya", "hasAPetUnicorn": False}

    def test_get_unknown_id_returns_404(self, client: TestClient):
        response = client.get("/person/99")

        assert response.status_code == 404
        error = response.json()["error"]
        assert error["code"] == "person_not_found"
        assert error["details"] == {"person_id": 99}

    def test_filter_by_ids(self, client: TestClient):
        response = client.get("/person/filterbyid", params=[("ids", 1), ("ids", 3), ("ids", 42)])

        assert response.status_code == 200
        assert [p["id"] for p in response.json()] == [1, 3]

    def test_filter_without_ids_returns_empty_list(self, client: TestClient):
        assert client.get("/person/filterbyid").json() == []

    def test_name_is_echoed(self, client: TestClient):
        response = client.get("/person/harry")

        assert response.status_code == 200
        assert response.json() == "harry"

    @pytest.mark.parametrize("name", ["Voldemort", "VOLDEMORT", "voldemort"])
    def test_forbidden_name_is_intercepted(self, client: TestClient, name: str):
        response = client.get(f"/person/{name}")

        assert response.status_code == 200
        assert response.json() == "Death Eaters are here..Watch out!!!!!!"


class TestOutputCache:
    def test_second_read_is_served_from_cache(self, client: TestClient):
        first = client.get("/person/1")
        second = client.get("/person/1")

        assert first.headers["X-Cache"] == "MISS"
        assert second.headers["X-Cache"] == "HIT"
        assert second.json() == first.json()

    def test_cache_varies_by_id(self, client: TestClient):
        client.get("/person/1")

        response = client.get("/person/2")

        assert response.headers["X-Cache"] == "MISS"
        assert response.json()["name"] == "Rachel"

    def test_create_evicts_person_tag(self, client: TestClient):
        client.get("/person/1")
        client.post("/person", json={"id": 7, "name": "Luna", "hasAPetUnicorn": True})

        assert client.get("/person/1").headers["X-Cache"] == "MISS"

    def test_update_is_visible_immediately(self, client: TestClient):
        client.get("/person/2")
        client.put("/person/2", json={"id": 2, "name": "Rae", "hasAPetUnicorn": False})

        response = client.get("/person/2")
        assert response.headers["X-Cache"] == "MISS"
        assert response.json()["name"] == "Rae"

    def test_not_found_is_not_cached(self, client: TestClient):
        assert client.get("/person/50").status_code == 404
        client.post("/person", json={"id": 50, "name": "Late"})

        assert client.get("/person/50").status_code == 200

    def test_person_list_is_cached_until_a_person_changes(self, client: TestClient):
        assert client.get("/person").headers["X-Cache"] == "MISS"
        assert client.get("/person").headers["X-Cache"] == "HIT"

        client.delete("/person/6")

        response = client.get("/person")
        assert response.headers["X-Cache"] == "MISS"
        assert len(response.json()) == 5

    def test_name_echo_is_cached_per_name(self, client: TestClient):
        assert client.get("/person/harry").headers["X-Cache"] == "MISS"

        hit = client.get("/person/harry")
        assert hit.headers["X-Cache"] == "HIT"
        assert hit.json() == "harry"
        assert client.get("/person/ron").headers["X-Cache"] == "MISS"

    def test_hello_get_is_cached_as_plain_text(self, client: TestClient):
        assert client.get("/hello-minimal-api").headers["X-Cache"] == "MISS"

        hit = client.get("/hello-minimal-api")
        assert hit.headers["X-Cache"] == "HIT"
        assert hit.text == "Hello Minimal Api!!!"
        assert hit.headers["content-type"].startswith("text/plain")

    def test_disabled_cache_sets_no_header(self, make_settings):
        client = TestClient(create_app(make_settings(rate_limit_enabled=False, cache_enabled=False)))

        response = client.get("/person/1")

        assert response.status_code == 200
        assert "X-Cache" not in response.headers


class TestWritePersons:
    def test_create_returns_201_with_location(self, client: TestClient):
        response = client.post("/person", json={"id": 7, "name": "Luna", "hasAPetUnicorn": True})

        assert response.status_code == 201
        assert response.headers["Location"] == "/person/7"
        assert client.get("/person/7").json()["name"] == "Luna"

    def test_create_accepts_snake_case_fields(self, client: TestClient):
        response = client.post("/person", json={"id": 8, "name": "Neville", "has_a_pet_unicorn": True})

        assert response.status_code == 201
        assert response.json()["hasAPetUnicorn"] is True

    def test_create_duplicate_returns_409(self, client: TestClient):
        response = client.post("/person", json={"id": 1, "name": "Copy"})

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "person_exists"

    def test_create_with_invalid_body_returns_422(self, client: TestClient):
        response = client.post("/person", json={"name": "No id"})

        assert response.status_code == 422

    def test_update_uses_path_id(self, client: TestClient):
        response = client.put("/person/2", json={"id": 5, "name": "Rae", "hasAPetUnicorn": False})

        assert response.status_code == 200
        assert response.json() == {"id": 2, "name": "Rae", "hasAPetUnicorn": False}
        assert client.get("/person/5").json()["name"] == "Paul"

    def test_update_unknown_returns_404(self, client: TestClient):
        response = client.put("/person/42", json={"id": 42, "name": "Nobody"})

        assert response.status_code == 404

    def test_delete(self, client: TestClient):
        response = client.delete("/person/3")

        assert response.status_code == 204
        assert response.content == b""
        assert client.get("/person/3").status_code == 404
        assert client.delete("/person/3").status_code == 404


class TestUpload:
    def test_upload_copies_bytes(self, client: TestClient, settings):
        response = client.post(
            "/person/upload/1",
            files={"image_file": ("unicorn.png", b"\x89PNG-bytes", "image/png")},
        )

        assert response.status_code == 200
        assert response.json() == {"person_id": 1, "file_name": "unicorn.png", "size": 10}
        stored = settings.app.upload_dir + "/1/unicorn.png"
        with open(stored, "rb") as fh:
            assert fh.read() == b"\x89PNG-bytes"

    def test_upload_strips_directories_from_file_name(self, client: TestClient, settings):
        response = client.post(
            "/person/upload/2",
            files={"image_file": ("../../etc/evil.png", b"x", "image/png")},
        )

        assert response.status_code == 200
        assert response.json()["file_name"] == "evil.png"

    def test_upload_for_unknown_person_returns_404(self, client: TestClient):
        response = client.post(
            "/person/upload/99",
            files={"image_file": ("a.png", b"x", "image/png")},
        )

        assert response.status_code == 404

    def test_upload_too_large_returns_413(self, make_settings):
        client = TestClient(create_app(make_settings(rate_limit_enabled=False, max_upload_size_mb=1)))

        response = client.post(
            "/person/upload/1",
            files={"image_file": ("big.bin", b"0" * (1024 * 1024 + 1), "application/octet-stream")},
        )

        assert response.status_code == 413
        assert response.json()["error"]["code"] == "file_too_large"


class TestHello:
    @pytest.mark.parametrize("method", ["GET", "POST", "PUT", "DELETE"])
    def test_hello_for_every_method(self, client: TestClient, method: str):
        response = client.request(method, "/hello-minimal-api")

        assert response.status_code == 200
        assert response.text == "Hello Minimal Api!!!"
        assert response.headers["content-type"].startswith("text/plain")

    def test_options(self, client: TestClient):
        response = client.options("/hello-minimal-api")

        assert response.status_code == 200
        assert response.text == "This is a OPTIONS call to minimal api"

    def test_cors_preflight_allows_any_origin(self, client: TestClient):
        response = client.options(
            "/person",
            headers={
                "Origin": "https://example.com",
                "Access-Control-Request-Method": "GET",
            },
        )

        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "*"
