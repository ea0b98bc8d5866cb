import base64
import uuid
from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError
from fastapi import HTTPException

from qualis.services.documents import (
    FOLDER_MARKER,
    build_path,
    classify_viewer_kind,
    documents,
    media_type_for,
    normalize_path,
    office_viewer_url,
)
from qualis.services.storage import StorageService

DOCX = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


def _not_found():
    return ClientError({"Error": {"Code": "NoSuchKey"}}, "GetObject")


@pytest.fixture()
def mock_storage():
    with patch("qualis.services.documents.storage") as storage:
        storage.is_configured.return_value = True
        storage.is_missing.side_effect = StorageService.is_missing
        yield storage


class TestPaths:
    def test_normalize(self):
        assert normalize_path("/care/notes/") == "care/notes"
        assert normalize_path("a//./b") == "a/b"
        assert normalize_path(None) == ""

    def test_traversal_rejected(self):
        with pytest.raises(HTTPException) as exc:
            normalize_path("../other-client")
        assert exc.value.status_code == 400

    def test_build_path_skips_empty(self):
        assert build_path("clients/1", "", "report.pdf") == "clients/1/report.pdf"


class TestViewerKind:
    def test_kinds(self):
        assert classify_viewer_kind("text/plain; charset=utf-8") == "text"
        assert classify_viewer_kind("application/json") == "text"
        assert classify_viewer_kind("image/png") == "image"
        assert classify_viewer_kind("application/pdf") == "pdf"
        assert classify_viewer_kind(DOCX) == "office"
        assert classify_viewer_kind("application/zip") == "binary"
        assert classify_viewer_kind(None) == "binary"

    def test_office_needs_a_url(self):
        assert classify_viewer_kind(DOCX, has_download_url=False) == "binary"

    def test_media_type_falls_back_to_extension(self):
        assert media_type_for("care.PDF") == "application/pdf"
        assert media_type_for("notes.docx", "application/octet-stream") == DOCX
        assert media_type_for("blob") == "application/octet-stream"
        assert media_type_for("x.txt", "text/csv") == "text/csv"

    def test_office_viewer_url_is_encoded(self):
        url = office_viewer_url("https://s3.example.com/a b.docx?X-Amz=1&y=2")
        assert url.startswith("https://view.officeapps.live.com/op/embed.aspx?src=")
        assert "https%3A%2F%2Fs3.example.com%2Fa%20b.docx%3FX-Amz%3D1%26y%3D2" in url


class TestDocumentStore:
    def test_list_hides_folder_marker(self, db_session, owner_scope, resident, mock_storage):
        prefix = f"clients/{resident.id}/"
        mock_storage.list_prefix.return_value = (
            [prefix + "assessments/"],
            [
                {"Key": prefix + FOLDER_MARKER, "Size": 0},
                {"Key": prefix + "consent.pdf", "Size": 2048},
            ],
        )
        result = documents.list(db_session, owner_scope, "clients", str(resident.id))
        mock_storage.list_prefix.assert_called_once_with(prefix)
        assert [(i["name"], i["type"]) for i in result["items"]] == [
            ("assessments", "dir"),
            ("consent.pdf", "file"),
        ]
        assert result["items"][1]["mime_type"] == "application/pdf"

    def test_list_subfolder(self, db_session, owner_scope, care_home, mock_storage):
        mock_storage.list_prefix.return_value = ([], [])
        result = documents.list(
            db_session, owner_scope, "care-homes", str(care_home.id), path="/audits/"
        )
        mock_storage.list_prefix.assert_called_once_with(
            f"care-homes/{care_home.id}/audits/"
        )
        assert result["path"] == "audits"

    def test_unknown_entity_type(self, db_session, owner_scope, mock_storage):
        with pytest.raises(HTTPException) as exc:
            documents.list(db_session, owner_scope, "incidents", str(uuid.uuid4()))
        assert exc.value.status_code == 404

    def test_out_of_scope_entity(
        self, db_session, manager_scope, other_resident, mock_storage
    ):
        with pytest.raises(HTTPException) as exc:
            documents.list(db_session, manager_scope, "clients", str(other_resident.id))
        assert exc.value.status_code == 404
        mock_storage.list_prefix.assert_not_called()

    def test_storage_not_configured(self, db_session, owner_scope, resident, mock_storage):
        mock_storage.is_configured.return_value = False
        with pytest.raises(HTTPException) as exc:
            documents.list(db_session, owner_scope, "clients", str(resident.id))
        assert exc.value.status_code == 503

    def test_create_folder_writes_marker(
        self, db_session, carer_scope, resident, mock_storage
    ):
        mock_storage.object_exists.return_value = False
        item = documents.create_folder(
            db_session, carer_scope, "clients", str(resident.id), "care", "Reviews"
        )
        assert item == {"name": "Reviews", "path": "care/Reviews", "type": "dir"}
        mock_storage.put_object.assert_called_once_with(
            f"clients/{resident.id}/care/Reviews/{FOLDER_MARKER}", b"", "text/plain"
        )

    def test_create_existing_folder_is_idempotent(
        self, db_session, carer_scope, resident, mock_storage
    ):
        mock_storage.object_exists.return_value = True
        documents.create_folder(
            db_session, carer_scope, "clients", str(resident.id), "", "Reviews"
        )
        mock_storage.put_object.assert_not_called()

    def test_upload(self, db_session, carer_scope, resident, mock_storage):
        item = documents.upload(
            db_session,
            carer_scope,
            "clients",
            str(resident.id),
            "care",
            "plan.pdf",
            b"%PDF-1.7",
            None,
        )
        assert item["path"] == "care/plan.pdf"
        assert item["size"] == 8
        mock_storage.put_object.assert_called_once_with(
            f"clients/{resident.id}/care/plan.pdf", b"%PDF-1.7", "application/pdf"
        )

    def test_read_office_document(self, db_session, owner_scope, resident, mock_storage):
        mock_storage.get_object.return_value = (b"PK\x03\x04", None)
        mock_storage.generate_download_url.return_value = "https://s3.example.com/x"
        content = documents.read(
            db_session, owner_scope, "clients", str(resident.id), "letters/a.docx"
        )
        assert content["kind"] == "office"
        assert content["media_type"] == DOCX
        assert content["path"] == f"clients/{resident.id}/letters/a.docx"
        assert base64.b64decode(content["content"]) == b"PK\x03\x04"
        assert content["viewer_url"].endswith("https%3A%2F%2Fs3.example.com%2Fx")

    def test_read_text(self, db_session, owner_scope, resident, mock_storage):
        mock_storage.get_object.return_value = (b"hello", "text/plain")
        mock_storage.generate_download_url.return_value = "https://s3.example.com/x"
        content = documents.read(
            db_session, owner_scope, "clients", str(resident.id), "notes.txt"
        )
        assert content["kind"] == "text"
        assert content["viewer_url"] is None

    def test_read_missing(self, db_session, owner_scope, resident, mock_storage):
        mock_storage.get_object.side_effect = _not_found()
        with pytest.raises(HTTPException) as exc:
            documents.read(db_session, owner_scope, "clients", str(resident.id), "x.pdf")
        assert exc.value.status_code == 404
        assert exc.value.detail == "Document not found"


def _configure(mock_settings):
    mock_settings.s3_endpoint_url = "http://localhost:9000"
    mock_settings.s3_access_key = "test-key"
    mock_settings.s3_secret_key = "test-secret"
    mock_settings.s3_region = "eu-west-2"
    mock_settings.s3_bucket_name = "documents"
    mock_settings.s3_presigned_url_expiry = 3600


class TestStorageService:
    def test_is_configured_false_by_default(self):
        assert StorageService.is_configured() is False

    def test_client_requires_configuration(self):
        with pytest.raises(RuntimeError):
            StorageService._get_client()

    @patch("qualis.services.storage.boto3")
    @patch("qualis.services.storage.settings")
    def test_list_prefix(self, mock_settings, mock_boto3):
        _configure(mock_settings)
        mock_client = MagicMock()
        mock_client.list_objects_v2.return_value = {
            "CommonPrefixes": [{"Prefix": "clients/1/a/"}],
            "Contents": [{"Key": "clients/1/b.txt", "Size": 3}],
        }
        mock_boto3.client.return_value = mock_client

        prefixes, objects = StorageService.list_prefix("clients/1/")
        assert prefixes == ["clients/1/a/"]
        assert objects[0]["Key"] == "clients/1/b.txt"
        mock_client.list_objects_v2.assert_called_once_with(
            Bucket="documents", Prefix="clients/1/", Delimiter="/", MaxKeys=1000
        )

    @patch("qualis.services.storage.boto3")
    @patch("qualis.services.storage.settings")
    def test_object_exists_false_on_404(self, mock_settings, mock_boto3):
        _configure(mock_settings)
        mock_client = MagicMock()
        mock_client.head_object.side_effect = ClientError(
            {"Error": {"Code": "404"}}, "HeadObject"
        )
        mock_boto3.client.return_value = mock_client
        assert StorageService.object_exists("clients/1/.keep") is False

    @patch("qualis.services.storage.boto3")
    @patch("qualis.services.storage.settings")
    def test_generate_download_url(self, mock_settings, mock_boto3):
        _configure(mock_settings)
        mock_client = MagicMock()
        mock_client.generate_presigned_url.return_value = "https://example.com/download"
        mock_boto3.client.return_value = mock_client

        url = StorageService.generate_download_url("clients/1/file.pdf")
        assert url == "https://example.com/download"
        mock_client.generate_presigned_url.assert_called_once()
