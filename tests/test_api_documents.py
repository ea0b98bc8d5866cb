from unittest.mock import patch

import pytest

from qualis.services.storage import StorageService


@pytest.fixture
def mock_storage():
    with patch("qualis.services.documents.storage") as storage:
        storage.is_configured.return_value = True
        storage.is_missing.side_effect = StorageService.is_missing
        yield storage


class TestDocumentEndpoints:
    def test_create_folder(self, client, carer_headers, resident, mock_storage):
        mock_storage.object_exists.return_value = False
        resp = client.post(
            f"/documents/clients/{resident.id}/folders",
            json={"parent_path": "reports", "name": "2026"},
            headers=carer_headers,
        )
        assert resp.status_code == 201
        assert resp.json() == {
            "name": "2026",
            "path": "reports/2026",
            "type": "dir",
            "size": None,
            "mime_type": None,
            "updated_at": None,
        }
        mock_storage.put_object.assert_called_once_with(
            f"clients/{resident.id}/reports/2026/.keep", b"", "text/plain"
        )

    def test_folder_name_required(self, client, carer_headers, resident, mock_storage):
        resp = client.post(
            f"/documents/clients/{resident.id}/folders",
            json={"parent_path": "reports"},
            headers=carer_headers,
        )
        assert resp.status_code == 422
        assert resp.json()["code"] == "validation_error"
        mock_storage.put_object.assert_not_called()

    def test_folder_traversal_rejected(
        self, client, carer_headers, resident, mock_storage
    ):
        resp = client.post(
            f"/documents/clients/{resident.id}/folders",
            json={"parent_path": "../../care-homes", "name": "x"},
            headers=carer_headers,
        )
        assert resp.status_code == 400

    def test_upload_file(self, client, carer_headers, care_home, mock_storage):
        resp = client.post(
            f"/documents/care-homes/{care_home.id}",
            data={"destination": "policies"},
            files={"file": ("fire.txt", b"Evacuate via east stairs", "text/plain")},
            headers=carer_headers,
        )
        assert resp.status_code == 201
        body = resp.json()
        assert body["path"] == "policies/fire.txt"
        assert body["size"] == 24
        mock_storage.put_object.assert_called_once_with(
            f"care-homes/{care_home.id}/policies/fire.txt",
            b"Evacuate via east stairs",
            "text/plain",
        )

    def test_upload_without_file(self, client, carer_headers, care_home, mock_storage):
        resp = client.post(
            f"/documents/care-homes/{care_home.id}",
            data={"destination": "policies"},
            files={"other": ("x.txt", b"x", "text/plain")},
            headers=carer_headers,
        )
        assert resp.status_code == 422
        mock_storage.put_object.assert_not_called()

    def test_json_body_is_not_an_upload(
        self, client, carer_headers, care_home, mock_storage
    ):
        resp = client.post(
            f"/documents/care-homes/{care_home.id}",
            json={"name": "policies"},
            headers=carer_headers,
        )
        assert resp.status_code == 422

    def test_list_folder(self, client, owner_headers, resident, mock_storage):
        prefix = f"clients/{resident.id}/"
        mock_storage.list_prefix.return_value = (
            [prefix + "reports/"],
            [{"Key": prefix + ".keep", "Size": 0}, {"Key": prefix + "plan.pdf", "Size": 10}],
        )
        resp = client.get(f"/documents/clients/{resident.id}", headers=owner_headers)
        assert resp.status_code == 200
        assert [(i["name"], i["type"]) for i in resp.json()["items"]] == [
            ("plan.pdf", "file"),
            ("reports", "dir"),
        ]

    def test_read_file(self, client, owner_headers, resident, mock_storage):
        mock_storage.get_object.return_value = (b"hello", "text/plain")
        mock_storage.generate_download_url.return_value = "https://s3.test/notes.txt"
        resp = client.get(
            f"/documents/clients/{resident.id}",
            params={"filePath": "notes.txt"},
            headers=owner_headers,
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["kind"] == "text"
        assert body["content"] == "aGVsbG8="
        assert body["path"] == f"clients/{resident.id}/notes.txt"

    def test_out_of_scope_entity(
        self, client, manager_headers, other_resident, mock_storage
    ):
        resp = client.get(
            f"/documents/clients/{other_resident.id}", headers=manager_headers
        )
        assert resp.status_code == 404

    def test_storage_not_configured(self, client, owner_headers, resident):
        with patch("qualis.services.documents.storage") as storage:
            storage.is_configured.return_value = False
            resp = client.get(
                f"/documents/clients/{resident.id}", headers=owner_headers
            )
        assert resp.status_code == 503
        assert resp.json()["code"] == "storage_unavailable"
