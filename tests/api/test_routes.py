"""
HTTP tests for the bucket routes.

The app runs in mock mode against a temporary bucket config file, so
every request goes through the real dependency wiring and adapters with
an in-memory bucket underneath.
"""

import pytest
from fastapi.testclient import TestClient

from src.api.dependencies import BucketDep, get_storage_client
from src.api.routes import objects
from src.config.settings import get_settings
from src.infrastructure.storage.client import MockStorageClient
from src.infrastructure.storage.memory import InMemoryS3Backend
from src.main import create_app


@pytest.fixture
def settings(make_settings, bucket_file):
    return make_settings(bucket_config_file=str(bucket_file))


@pytest.fixture
def client(settings):
    app = create_app()
    app.dependency_overrides[get_settings] = lambda: settings
    return TestClient(app)


def upload(client, name, body=b"data", prefix="", content_type="text/plain", bucket="media"):
    return client.post(
        f"/api/buckets/{bucket}/objects",
        files={"file": (name, body, content_type)},
        data={"prefix": prefix},
    )


def list_objects(client, bucket="media", **params):
    response = client.get(f"/api/buckets/{bucket}/objects", params=params)
    assert response.status_code == 200, response.text
    return response.json()


def use_backend(client, backend):
    """Serve every bucket from `backend` instead of the shared in-memory one."""
    def storage_override(bucket: BucketDep):
        return MockStorageClient(bucket, backend=backend)

    client.app.dependency_overrides[get_storage_client] = storage_override


# ---------------------------------------------------------------------------
# Buckets
# ---------------------------------------------------------------------------

class TestBuckets:

    def test_lists_public_fields_only(self, client):
        response = client.get("/api/buckets")

        assert response.status_code == 200
        assert response.json() == [
            {"id": "media", "name": "media-bucket", "displayName": "Media", "provider": "r2"},
            {"id": "archive", "name": "archive-bucket", "displayName": "archive-bucket", "provider": "s3"},
        ]
        assert "secret" not in response.text

    def test_broken_configuration_is_500(self, client, settings, tmp_path):
        broken = tmp_path / "broken.json"
        broken.write_text('[{"id": "x", "name": "x", "provider": "r2"}]', encoding="utf-8")
        client.app.dependency_overrides[get_settings] = lambda: settings.model_copy(
            update={"bucket_config_file": str(broken)}
        )

        response = client.get("/api/buckets")

        assert response.status_code == 500
        assert "Bucket configuration error" in response.json()["detail"]


# ---------------------------------------------------------------------------
# Objects
# ---------------------------------------------------------------------------

class TestListing:

    def test_empty_bucket(self, client):
        page = list_objects(client)

        assert page["objects"] == []
        assert page["isTruncated"] is False

    def test_folders_and_files_with_camel_case_fields(self, client):
        upload(client, "a.txt", prefix="docs/")
        upload(client, "b.png", prefix="docs/img/", content_type="image/png")

        page = list_objects(client, prefix="docs/")

        folder, file = page["objects"]
        assert folder == {
            "id": "folder-docs/img/",
            "name": "img",
            "path": "docs/img/",
            "type": "folder",
            "size": 0,
            "lastModified": None,
            "isFolder": True,
        }
        assert file["name"] == "a.txt"
        assert file["path"] == "docs/a.txt"
        assert file["type"] == "text/plain"
        assert file["isFolder"] is False
        assert file["lastModified"]

    def test_pagination_round_trip(self, client):
        for i in range(5):
            upload(client, f"f{i}.txt")

        first = list_objects(client, maxKeys=2)
        assert len(first["objects"]) == 2
        assert first["isTruncated"] is True
        assert first["nextContinuationToken"]

        rest = list_objects(client, continuationToken=first["nextContinuationToken"])
        assert [o["name"] for o in rest["objects"]] == ["f2.txt", "f3.txt", "f4.txt"]
        assert rest["isTruncated"] is False

    def test_mock_server_does_not_accumulate_call_history(self, client):
        upload(client, "a.txt")

        for _ in range(50):
            list_objects(client)

        assert MockStorageClient.backend_for("media").calls == []

    @pytest.mark.parametrize("max_keys", [0, 1001, "lots"])
    def test_invalid_page_size_is_400(self, client, max_keys):
        response = client.get("/api/buckets/media/objects", params={"maxKeys": max_keys})

        assert response.status_code == 400
        assert "maxKeys" in response.json()["detail"]


class TestUpload:

    def test_upload_into_prefix(self, client):
        response = upload(client, "hello.txt", b"hi", prefix="docs")

        assert response.status_code == 201
        assert response.json() == {
            "message": "File uploaded successfully",
            "filename": "hello.txt",
            "key": "docs/hello.txt",
        }
        assert MockStorageClient.backend_for("media").keys("media-bucket") == ["docs/hello.txt"]

    def test_content_type_inferred_when_browser_sends_none(self, client):
        upload(client, "photo.jpg", content_type="application/octet-stream")

        response = client.get("/api/buckets/media/objects/photo.jpg")

        assert response.headers["content-type"] == "image/jpeg"

    def test_missing_file_is_400(self, client):
        response = client.post("/api/buckets/media/objects", data={"prefix": "docs/"})

        assert response.status_code == 400
        assert response.json()["detail"] == "No file provided"

    def test_oversized_upload_is_413(self, client, settings):
        client.app.dependency_overrides[get_settings] = lambda: settings.model_copy(
            update={"max_upload_size_mb": 0}
        )

        response = upload(client, "big.bin", b"0123456789")

        assert response.status_code == 413
        assert MockStorageClient.backend_for("media").keys("media-bucket") == []


class TestDownload:

    def test_streams_bytes_with_headers(self, client):
        upload(client, "hello.txt", b"hello world", prefix="docs/")

        response = client.get("/api/buckets/media/objects/docs/hello.txt")

        assert response.status_code == 200
        assert response.content == b"hello world"
        assert response.headers["content-type"].startswith("text/plain")
        assert response.headers["content-length"] == "11"
        assert response.headers["content-disposition"] == 'attachment; filename="hello.txt"'

    def test_non_ascii_filename_disposition(self, client):
        upload(client, "résumé.pdf", b"%PDF", content_type="application/pdf")

        response = client.get("/api/buckets/media/objects/résumé.pdf")

        assert response.status_code == 200
        assert response.headers["content-disposition"] == "attachment; filename*=utf-8''r%C3%A9sum%C3%A9.pdf"

    def test_presigned_url_is_fetchable_in_mock_mode(self, client):
        body = b"\x00\x01binary\xff" * 100
        upload(client, "my blob.bin", body, prefix="bin/", content_type="application/octet-stream")

        response = client.get("/api/buckets/media/objects/bin/my blob.bin", params={"presigned": "true"})

        assert response.status_code == 200
        payload = response.json()
        assert payload["expiresIn"] == 3600
        assert payload["url"] == "/api/buckets/media/objects/bin/my%20blob.bin"

        fetched = client.get(payload["url"])
        assert fetched.status_code == 200
        assert fetched.content == body

    def test_missing_object_surfaces_provider_error(self, client):
        response = client.get("/api/buckets/media/objects/missing.txt")

        assert response.status_code == 500
        assert "NoSuchKey" in response.json()["detail"]

    async def test_body_closed_when_stream_is_abandoned(self, r2_bucket, make_settings):
        class TrackingBackend(InMemoryS3Backend):
            def __init__(self):
                super().__init__()
                self.bodies = []

            def get_object(self, **kwargs):
                response = super().get_object(**kwargs)
                self.bodies.append(response["Body"])
                return response

        backend = TrackingBackend()
        storage = MockStorageClient(r2_bucket, backend=backend)
        await storage.upload_object("big.bin", b"x" * 1024, "application/octet-stream")

        response = await objects.get_object(
            key="big.bin", bucket=r2_bucket, storage=storage, settings=make_settings()
        )
        [body] = backend.bodies
        assert not body.closed

        # runs after the response even if the client went away mid-stream
        await response.background()

        assert body.closed


class TestDelete:

    def test_delete_single_object(self, client):
        upload(client, "a.txt", prefix="docs/")

        response = client.delete("/api/buckets/media/objects/docs/a.txt")

        assert response.status_code == 200
        assert response.json()["message"] == "Successfully deleted docs/a.txt"
        assert list_objects(client, prefix="docs/")["objects"] == []

    def test_batch_delete(self, client):
        for name in ("a.txt", "b.txt", "c.txt"):
            upload(client, name)

        response = client.post(
            "/api/buckets/media/objects/delete-batch",
            json={"keys": ["a.txt", "b.txt"]},
        )

        assert response.status_code == 200
        assert response.json()["deletedCount"] == 2
        assert [o["path"] for o in list_objects(client)["objects"]] == ["c.txt"]

    def test_batch_delete_without_keys_is_400(self, client):
        response = client.post("/api/buckets/media/objects/delete-batch", json={"keys": []})

        assert response.status_code == 400
        assert response.json()["detail"] == "No valid keys provided for deletion"

    def test_partial_batch_failure_is_500_with_provider_message(self, client):
        class RejectingBackend(InMemoryS3Backend):
            def delete_objects(self, Bucket, Delete, **kwargs):
                super().delete_objects(Bucket=Bucket, Delete=Delete)
                return {"Errors": [{"Key": "locked.txt", "Code": "AccessDenied", "Message": "Access Denied"}]}

        use_backend(client, RejectingBackend())

        response = client.post(
            "/api/buckets/media/objects/delete-batch",
            json={"keys": ["a.txt", "locked.txt"]},
        )

        assert response.status_code == 500
        detail = response.json()["detail"]
        assert detail.startswith("Failed to delete objects:")
        assert "locked.txt (AccessDenied: Access Denied)" in detail


# ---------------------------------------------------------------------------
# Folders
# ---------------------------------------------------------------------------

class TestFolders:

    def test_create_folder_in_current_prefix(self, client):
        response = client.post(
            "/api/buckets/media/folders",
            json={"folderName": " re/ports ", "currentPrefix": "docs/"},
        )

        assert response.status_code == 201
        assert response.json() == {
            "message": "Folder created successfully",
            "folderPath": "docs/reports/",
            "folderName": "reports",
        }
        page = list_objects(client, prefix="docs/")
        assert [o["path"] for o in page["objects"]] == ["docs/reports/"]

    @pytest.mark.parametrize("body, detail", [
        ({}, "Folder name is required"),
        ({"folderName": "   "}, "Folder name is required"),
        ({"folderName": "//"}, "Invalid folder name"),
    ])
    def test_invalid_folder_name_is_400(self, client, body, detail):
        response = client.post("/api/buckets/media/folders", json=body)

        assert response.status_code == 400
        assert response.json()["detail"] == detail

    def test_delete_folder_reports_count(self, client):
        client.post("/api/buckets/media/folders", json={"folderName": "docs"})
        upload(client, "a.txt", prefix="docs/")
        upload(client, "b.txt", prefix="docs/sub/")

        response = client.request("DELETE", "/api/buckets/media/folders", json={"folderPath": "docs/"})

        assert response.status_code == 200
        assert response.json() == {
            "message": "Folder and 3 item(s) deleted successfully",
            "deletedCount": 3,
            "folderPath": "docs/",
        }
        assert list_objects(client)["objects"] == []

    def test_delete_empty_folder_counts_marker(self, client):
        client.post("/api/buckets/media/folders", json={"folderName": "empty"})

        response = client.request("DELETE", "/api/buckets/media/folders", json={"folderPath": "empty"})

        assert response.json()["deletedCount"] == 1

    def test_bucket_root_cannot_be_deleted_as_folder(self, client):
        upload(client, "keep.txt")

        response = client.request("DELETE", "/api/buckets/media/folders", json={"folderPath": "/"})

        assert response.status_code == 400
        assert [o["path"] for o in list_objects(client)["objects"]] == ["keep.txt"]


# ---------------------------------------------------------------------------
# Unknown buckets
# ---------------------------------------------------------------------------

class TestUnknownBucket:

    @pytest.mark.parametrize("method, path, kwargs", [
        ("GET", "/api/buckets/nope/objects", {}),
        ("POST", "/api/buckets/nope/objects", {"files": {"file": ("a.txt", b"x", "text/plain")}}),
        ("GET", "/api/buckets/nope/objects/a.txt", {}),
        ("DELETE", "/api/buckets/nope/objects/a.txt", {}),
        ("POST", "/api/buckets/nope/objects/delete-batch", {"json": {"keys": ["a.txt"]}}),
        ("POST", "/api/buckets/nope/folders", {"json": {"folderName": "f"}}),
        ("DELETE", "/api/buckets/nope/folders", {"json": {"folderPath": "f/"}}),
    ])
    def test_returns_404_without_touching_storage(self, client, method, path, kwargs):
        backend = InMemoryS3Backend(record_calls=True)
        use_backend(client, backend)

        response = client.request(method, path, **kwargs)

        assert response.status_code == 404
        assert response.json() == {"detail": "Bucket not found"}
        assert backend.calls == []
        assert MockStorageClient._backends == {}


# ---------------------------------------------------------------------------
# Health and UI
# ---------------------------------------------------------------------------

class TestHealth:

    def test_liveness(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"
        assert response.json()["details"] == {"mock_mode": True}

    def test_ready_with_buckets(self, client):
        response = client.get("/health/ready")

        assert response.status_code == 200
        assert response.json()["status"] == "ready"

    def test_not_ready_without_buckets(self, client, make_settings):
        client.app.dependency_overrides[get_settings] = lambda: make_settings()

        response = client.get("/health/ready")

        assert response.status_code == 503
        checks = {c["name"]: c for c in response.json()["checks"]}
        assert checks["buckets"]["error"] == "No buckets configured"


class TestUserInterface:

    def test_root_redirects_to_ui(self, client):
        response = client.get("/", follow_redirects=False)

        assert response.status_code == 307
        assert response.headers["location"] == "/ui/"

    def test_ui_page_is_served(self, client):
        response = client.get("/ui/")

        assert response.status_code == 200
        assert "Bucket Browser" in response.text
