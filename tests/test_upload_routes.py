"""Tests for the upload and preview URL endpoints."""

from unittest.mock import MagicMock

import pytest

from configs.config import get_config
from src.errors import StorageError
from src.routes.dependencies import get_object_access

cfg = get_config()

MP4_BYTES = (
    (28).to_bytes(4, "big") + b"ftypisom" + b"\x00\x00\x02\x00" + b"isomiso2mp41"
) + b"\x00" * 2048


@pytest.fixture
def storage() -> MagicMock:
    mock = MagicMock()
    mock.object_url.side_effect = lambda key: f"https://bucket.s3.amazonaws.com/{key}"
    mock.presign.return_value = "https://bucket.s3.amazonaws.com/k?X-Amz-Signature=abc"
    return mock


@pytest.fixture
def upload_client(app, client, storage):
    app.dependency_overrides[get_object_access] = lambda: storage
    return client


def _post_video(client, data: bytes, filename: str = "clip.mp4"):
    return client.post("/upload", files={"video": (filename, data, "video/mp4")})


class TestUpload:
    def test_stores_mp4_under_uploads(self, upload_client, storage):
        response = _post_video(upload_client, MP4_BYTES)

        assert response.status_code == 200
        body = response.json()
        key = body["s3Key"]
        assert key.startswith("uploads/") and key.endswith(".mp4")
        assert body["fileUrl"] == f"https://bucket.s3.amazonaws.com/{key}"
        storage.upload.assert_called_once_with(MP4_BYTES, key, "video/mp4")

    def test_each_upload_gets_a_fresh_key(self, upload_client):
        first = _post_video(upload_client, MP4_BYTES).json()["s3Key"]
        second = _post_video(upload_client, MP4_BYTES).json()["s3Key"]

        assert first != second

    def test_client_filename_never_reaches_the_key(self, upload_client):
        key = _post_video(upload_client, MP4_BYTES, "../../etc/passwd").json()["s3Key"]

        assert ".." not in key
        assert key.endswith(".mp4")

    def test_non_mp4_content_is_rejected(self, upload_client, storage):
        response = _post_video(upload_client, b"<html>not a video</html>", "fake.mp4")

        assert response.status_code == 400
        assert response.json()["detail"] == "Only MP4 files are allowed"
        storage.upload.assert_not_called()

    def test_empty_file_is_rejected(self, upload_client, storage):
        response = _post_video(upload_client, b"")

        assert response.status_code == 400
        storage.upload.assert_not_called()

    def test_missing_file_field(self, upload_client):
        assert upload_client.post("/upload").status_code == 422

    def test_oversized_file_is_rejected(self, upload_client, storage, monkeypatch):
        monkeypatch.setattr(cfg, "MAX_UPLOAD_BYTES", 1024 * 1024)
        monkeypatch.setattr(cfg, "UPLOAD_CHUNK_BYTES", 64 * 1024)

        response = _post_video(upload_client, MP4_BYTES + b"\x00" * (1024 * 1024))

        assert response.status_code == 413
        assert response.json()["detail"] == "File too large (max 1MB)"
        storage.upload.assert_not_called()

    def test_storage_failure(self, upload_client, storage):
        storage.upload.side_effect = StorageError("bucket gone")

        response = _post_video(upload_client, MP4_BYTES)

        assert response.status_code == 502


class TestPresignedUrl:
    def test_returns_one_hour_url(self, upload_client, storage):
        response = upload_client.post("/get-presigned-url", json={"s3Key": "uploads/a.mp4"})

        assert response.status_code == 200
        assert response.json() == {"url": storage.presign.return_value}
        storage.presign.assert_called_once_with("uploads/a.mp4", 3600)

    @pytest.mark.parametrize("key", ["", "../secrets.txt", "/etc/passwd", "~/a.mp4"])
    def test_bad_keys_are_rejected(self, upload_client, storage, key):
        response = upload_client.post("/get-presigned-url", json={"s3Key": key})

        assert response.status_code == 422
        storage.presign.assert_not_called()

    def test_missing_key(self, upload_client):
        assert upload_client.post("/get-presigned-url", json={}).status_code == 422

    def test_storage_failure(self, upload_client, storage):
        storage.presign.side_effect = StorageError("no credentials")

        response = upload_client.post("/get-presigned-url", json={"s3Key": "uploads/a.mp4"})

        assert response.status_code == 502
