"""
API tests for file records: upload URLs, registration with content checks,
listing, search, deletion, sync, rename and move.
"""

import re

import pytest
from botocore.exceptions import ClientError

from tests.conftest import TEST_BUCKET, missing_object_error, streaming_body

UPLOAD_REQUEST = {"fileName": "photo.png", "fileSize": 2048, "contentType": "image/png"}
STORED_KEY = "uploads/3f2b9c1e-0000-4000-8000-000000000001"
STORED_PATH = "/objects/3f2b9c1e-0000-4000-8000-000000000001"


def _create_file(api_client, payload, **overrides):
    body = dict(payload, **overrides)
    response = api_client.post("/api/files", json=body)
    assert response.status_code == 201, response.text
    return response.json()


# ============================================================================
# Upload URL
# ============================================================================

class TestUploadUrl:

    def test_issues_presigned_url(self, guest_client, s3_client):
        response = guest_client.post("/api/files/upload-url", json=UPLOAD_REQUEST)

        assert response.status_code == 200
        body = response.json()
        assert body["uploadURL"] == s3_client.generate_presigned_url.return_value
        assert body["key"].startswith("uploads/")
        assert body["objectPath"] == "/objects/" + body["key"].split("/", 1)[1]
        assert re.match(r"^\d{13}_[0-9a-f]{8}_photo\.png$", body["sanitizedFilename"])

        assert response.headers["X-Upload-Validation"] == "passed"
        assert response.headers["X-Rate-Limit-Remaining"] == "9"
        assert int(response.headers["X-Rate-Limit-Reset"]) > 0

    def test_signs_with_detected_content_type(self, guest_client, s3_client):
        guest_client.post("/api/files/upload-url", json=UPLOAD_REQUEST)

        params = s3_client.generate_presigned_url.call_args.kwargs["Params"]
        assert params["ContentType"] == "image/png"
        assert params["ServerSideEncryption"] == "AES256"

    def test_requires_authentication(self, client, s3_client):
        response = client.post("/api/files/upload-url", json=UPLOAD_REQUEST)

        assert response.status_code == 401
        s3_client.generate_presigned_url.assert_not_called()

    @pytest.mark.parametrize("missing", ["fileName", "fileSize", "contentType"])
    def test_missing_fields(self, guest_client, missing):
        body = {k: v for k, v in UPLOAD_REQUEST.items() if k != missing}

        response = guest_client.post("/api/files/upload-url", json=body)

        assert response.status_code == 400
        assert response.json()["error"] == "Missing required file information"

    def test_rejects_invalid_file(self, guest_client, s3_client):
        response = guest_client.post("/api/files/upload-url", json={
            "fileName": "setup.exe", "fileSize": 1024, "contentType": "application/x-msdownload",
        })

        assert response.status_code == 400
        assert response.json()["error"] == "File validation failed"
        assert "File extension '.exe' is not allowed" in response.json()["details"]
        s3_client.generate_presigned_url.assert_not_called()

    def test_rate_limit(self, guest_client, clock):
        for _ in range(10):
            assert guest_client.post("/api/files/upload-url", json=UPLOAD_REQUEST).status_code == 200

        clock.advance(15)
        response = guest_client.post("/api/files/upload-url", json=UPLOAD_REQUEST)

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "45"
        assert response.json()["error"] == "Too many upload attempts"
        assert response.json()["retryAfter"] == 45

        clock.advance(46)
        assert guest_client.post("/api/files/upload-url", json=UPLOAD_REQUEST).status_code == 200

    def test_invalid_files_count_against_the_limit(self, guest_client):
        bad = dict(UPLOAD_REQUEST, fileName="bad.exe")
        for _ in range(10):
            guest_client.post("/api/files/upload-url", json=bad)

        response = guest_client.post("/api/files/upload-url", json=UPLOAD_REQUEST)

        assert response.status_code == 429

    def test_signing_failure(self, guest_client, s3_client):
        s3_client.generate_presigned_url.side_effect = RuntimeError("no credentials")

        response = guest_client.post("/api/files/upload-url", json=UPLOAD_REQUEST)

        assert response.status_code == 500
        assert response.json()["error"] == "Failed to get upload URL"


# ============================================================================
# Registering files
# ============================================================================

class TestCreateFile:

    def test_creates_synced_record(self, guest_client, file_payload):
        body = _create_file(guest_client, file_payload)

        assert body["objectPath"] == STORED_PATH
        assert body["status"] == "synced"
        assert body["originalName"] == "quarterly report.pdf"
        assert body["name"].endswith("_quarterly_report.pdf")
        assert body["folderId"] is None
        assert body["uploadedAt"]

    def test_sniffs_stored_object_head(self, guest_client, file_payload, s3_client):
        _create_file(guest_client, file_payload)

        kwargs = s3_client.get_object.call_args.kwargs
        assert kwargs["Key"] == STORED_KEY
        assert kwargs["Range"] == "bytes=0-8191"

    def test_content_mismatch_deletes_object(self, guest_client, file_payload, s3_client):
        s3_client.get_object.side_effect = lambda **kwargs: {"Body": streaming_body(b"\x89PNG\r\n\x1a\n0000")}

        response = guest_client.post("/api/files", json=file_payload)

        assert response.status_code == 400
        assert response.json()["error"] == "File content validation failed"
        assert response.json()["details"] == [
            "File content doesn't match declared type. Expected: application/pdf, Detected: image/png"
        ]
        s3_client.delete_object.assert_called_once_with(Bucket=TEST_BUCKET, Key=STORED_KEY)
        assert guest_client.get("/api/files").json() == []

    def test_dangerous_content_is_rejected(self, guest_client, file_payload, s3_client):
        s3_client.get_object.side_effect = lambda **kwargs: {"Body": streaming_body(b"MZ\x90\x00payload")}

        response = guest_client.post("/api/files", json=file_payload)

        assert response.status_code == 400
        assert "File contains potentially dangerous content" in response.json()["details"]

    def test_missing_object_skips_content_check(self, guest_client, file_payload, s3_client):
        s3_client.get_object.side_effect = missing_object_error("GetObject")

        body = _create_file(guest_client, file_payload)

        assert body["status"] == "synced"
        s3_client.delete_object.assert_not_called()

    def test_empty_upload_is_registered(self, guest_client, file_payload, s3_client):
        def get_object(**kwargs):
            if "Range" in kwargs:
                raise ClientError({"Error": {"Code": "InvalidRange", "Message": "Range Not Satisfiable"}}, "GetObject")
            return {"Body": streaming_body(b"")}

        s3_client.get_object.side_effect = get_object

        body = _create_file(guest_client, file_payload, size=0)

        assert body["size"] == 0
        assert body["status"] == "synced"
        s3_client.delete_object.assert_not_called()

    def test_unreadable_object_skips_content_check(self, guest_client, file_payload, s3_client):
        s3_client.get_object.side_effect = ClientError({"Error": {"Code": "AccessDenied"}}, "GetObject")

        body = _create_file(guest_client, file_payload)

        assert body["status"] == "synced"
        s3_client.delete_object.assert_not_called()

    def test_empty_folder_id_means_root(self, guest_client, file_payload):
        body = _create_file(guest_client, file_payload, folderId="")

        assert body["folderId"] is None
        root_files = guest_client.get("/api/folders/root/contents").json()["files"]
        assert [f["id"] for f in root_files] == [body["id"]]

    def test_invalid_filename(self, guest_client, file_payload):
        response = guest_client.post("/api/files", json=dict(file_payload, name="../../etc/passwd"))

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid filename"

    def test_unknown_folder(self, guest_client, file_payload):
        response = guest_client.post("/api/files", json=dict(file_payload, folderId="missing"))

        assert response.status_code == 404
        assert response.json()["error"] == "Folder not found"

    def test_missing_fields(self, guest_client):
        response = guest_client.post("/api/files", json={"name": "a.pdf"})

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid request"

    def test_keeps_metadata(self, guest_client, file_payload):
        body = _create_file(guest_client, file_payload, metadata={"pages": 12})

        assert body["metadata"] == {"pages": 12}


# ============================================================================
# Listing and search
# ============================================================================

class TestListAndSearch:

    @pytest.fixture
    def catalog(self, guest_client, file_payload, s3_client):
        _create_file(guest_client, file_payload)
        # Unrecognised leading bytes pass the signature check for any declared type
        s3_client.get_object.side_effect = lambda **kwargs: {"Body": streaming_body(b"no signature")}
        _create_file(guest_client, file_payload, name="Beach.png", originalName="Beach.png",
                     mimeType="image/png", objectPath="uploads/beach")
        _create_file(guest_client, file_payload, name="talk.mp4", originalName="Conference Talk.mp4",
                     mimeType="video/mp4", objectPath="uploads/talk")
        return guest_client

    def test_lists_all(self, catalog):
        response = catalog.get("/api/files")

        assert response.status_code == 200
        assert len(response.json()) == 3

    def test_requires_authentication(self, client):
        assert client.get("/api/files").status_code == 401

    def test_search_is_case_insensitive(self, catalog):
        response = catalog.get("/api/files/search", params={"q": "REPORT"})

        assert [f["originalName"] for f in response.json()] == ["quarterly report.pdf"]

    @pytest.mark.parametrize("file_type,expected", [
        ("Images", ["Beach.png"]),
        ("Videos", ["Conference Talk.mp4"]),
        ("Documents", ["quarterly report.pdf"]),
    ])
    def test_search_by_category(self, catalog, file_type, expected):
        response = catalog.get("/api/files/search", params={"type": file_type})

        assert [f["originalName"] for f in response.json()] == expected

    def test_all_files_category_and_empty_query(self, catalog):
        response = catalog.get("/api/files/search", params={"type": "All Files"})

        assert len(response.json()) == 3
        assert len(catalog.get("/api/files/search").json()) == 3

    def test_query_and_category_combine(self, catalog):
        response = catalog.get("/api/files/search", params={"q": "a", "type": "Images"})

        assert [f["originalName"] for f in response.json()] == ["Beach.png"]

    def test_wildcards_are_literal(self, catalog):
        assert catalog.get("/api/files/search", params={"q": "%"}).json() == []


# ============================================================================
# Deletion
# ============================================================================

class TestDeleteFiles:

    def test_delete_removes_record_and_object(self, guest_client, file_payload, s3_client):
        file_id = _create_file(guest_client, file_payload)["id"]

        response = guest_client.delete(f"/api/files/{file_id}")

        assert response.status_code == 204
        assert response.content == b""
        s3_client.delete_object.assert_called_once_with(Bucket=TEST_BUCKET, Key=STORED_KEY)
        assert guest_client.get("/api/files").json() == []

    def test_delete_unknown_file(self, guest_client):
        response = guest_client.delete("/api/files/does-not-exist")

        assert response.status_code == 404
        assert response.json()["error"] == "File not found"

    def test_storage_failure_does_not_fail_delete(self, guest_client, file_payload, s3_client):
        file_id = _create_file(guest_client, file_payload)["id"]
        s3_client.delete_object.side_effect = missing_object_error("DeleteObject")

        assert guest_client.delete(f"/api/files/{file_id}").status_code == 204

    def test_bulk_delete_counts_existing_records(self, guest_client, file_payload, s3_client):
        first = _create_file(guest_client, file_payload)["id"]
        second = _create_file(guest_client, file_payload, objectPath="uploads/second")["id"]

        response = guest_client.post("/api/files/bulk-delete", json={"fileIds": [first, second, "missing"]})

        assert response.status_code == 200
        assert response.json() == {"success": True, "deletedCount": 2}
        assert s3_client.delete_object.call_count == 2
        assert guest_client.get("/api/files").json() == []

    @pytest.mark.parametrize("body", [{"fileIds": []}, {}])
    def test_bulk_delete_requires_ids(self, guest_client, body):
        response = guest_client.post("/api/files/bulk-delete", json=body)

        assert response.status_code == 400
        assert response.json()["error"] == "fileIds must be a non-empty array"


# ============================================================================
# Sync
# ============================================================================

class TestSync:

    def test_marks_missing_objects_failed(self, guest_client, file_payload, s3_client):
        kept = _create_file(guest_client, file_payload)["id"]
        _create_file(guest_client, file_payload, objectPath="uploads/gone")

        def head_object(Bucket, Key):
            if Key == "uploads/gone":
                raise missing_object_error()
            return {"ContentLength": 10, "ContentType": "application/pdf", "ETag": '"e"'}

        s3_client.head_object.side_effect = head_object

        response = guest_client.post("/api/files/sync")

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "totalFiles": 2,
            "syncedCount": 1,
            "failedCount": 1,
            "message": "Sync complete. 1 files verified, 1 issues found.",
        }

        statuses = {f["id"]: f["status"] for f in guest_client.get("/api/files").json()}
        assert statuses[kept] == "synced"
        assert sorted(statuses.values()) == ["failed", "synced"]

    def test_recovered_object_is_synced_again(self, guest_client, file_payload, s3_client):
        _create_file(guest_client, file_payload)
        s3_client.head_object.side_effect = missing_object_error()
        guest_client.post("/api/files/sync")

        s3_client.head_object.side_effect = None
        response = guest_client.post("/api/files/sync")

        assert response.json()["syncedCount"] == 1
        assert guest_client.get("/api/files").json()[0]["status"] == "synced"

    def test_empty_catalog(self, guest_client):
        response = guest_client.post("/api/files/sync")

        assert response.json()["totalFiles"] == 0


# ============================================================================
# Rename and move
# ============================================================================

class TestRenameAndMove:

    def test_rename_sanitizes(self, guest_client, file_payload):
        file_id = _create_file(guest_client, file_payload)["id"]

        response = guest_client.patch(f"/api/files/{file_id}/rename", json={"name": "final draft.pdf"})

        assert response.status_code == 200
        assert re.match(r"^\d{13}_[0-9a-f]{8}_final_draft\.pdf$", response.json()["name"])
        assert response.json()["originalName"] == "quarterly report.pdf"

    def test_rename_requires_name(self, guest_client, file_payload):
        file_id = _create_file(guest_client, file_payload)["id"]

        response = guest_client.patch(f"/api/files/{file_id}/rename", json={})

        assert response.status_code == 400
        assert response.json()["error"] == "Name is required"

    def test_rename_rejects_invalid_name(self, guest_client, file_payload):
        file_id = _create_file(guest_client, file_payload)["id"]

        response = guest_client.patch(f"/api/files/{file_id}/rename", json={"name": "run.bat"})

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid filename"

    def test_rename_unknown_file(self, guest_client):
        response = guest_client.patch("/api/files/missing/rename", json={"name": "a.pdf"})

        assert response.status_code == 404

    def test_move_into_folder_and_back_to_root(self, guest_client, file_payload):
        file_id = _create_file(guest_client, file_payload)["id"]
        folder_id = guest_client.post("/api/folders", json={"name": "Reports"}).json()["id"]

        moved = guest_client.patch(f"/api/files/{file_id}/move", json={"folderId": folder_id})
        assert moved.status_code == 200
        assert moved.json()["folderId"] == folder_id

        back = guest_client.patch(f"/api/files/{file_id}/move", json={"folderId": None})
        assert back.json()["folderId"] is None

    def test_move_to_unknown_folder(self, guest_client, file_payload):
        file_id = _create_file(guest_client, file_payload)["id"]

        response = guest_client.patch(f"/api/files/{file_id}/move", json={"folderId": "missing"})

        assert response.status_code == 404
        assert response.json()["error"] == "Folder not found"
