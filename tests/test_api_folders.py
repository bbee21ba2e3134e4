import os
import sys

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from conftest import make_user
from vault.models.audit_log import AuditLog
from vault.models.folder import Folder
from vault.services import vault


def test_folders_require_login(client):
    r = client.get('/api/folders')
    assert r.status_code == 401
    assert r.get_json() == {"error": "Unauthorized"}


def test_create_and_list_folders(client, logged_in):
    r = client.post('/api/folders', json={"name": "  Legal  ", "folderType": "founder"})
    assert r.status_code == 200
    parent = r.get_json()["folder"]
    assert parent["name"] == "Legal"
    assert parent["folder_type"] == "founder"
    assert parent["parent_id"] is None

    r = client.post('/api/folders', json={"name": "Contracts", "parentId": parent["id"]})
    assert r.status_code == 200
    assert r.get_json()["folder"]["parent_id"] == parent["id"]
    assert r.get_json()["folder"]["folder_type"] == "custom"

    names = [f["name"] for f in client.get('/api/folders').get_json()["folders"]]
    assert names == ["Legal", "Contracts"]

    audit = AuditLog.query.filter_by(action="folder_created").all()
    assert len(audit) == 2
    assert audit[0].details["folderName"] == "Legal"


def test_empty_name_rejected(client, logged_in):
    r = client.post('/api/folders', json={"name": "   "})
    assert r.status_code == 400
    assert r.get_json()["error"] == "Folder name is required"
    assert Folder.query.count() == 0


def test_invalid_type_rejected(client, logged_in):
    r = client.post('/api/folders', json={"name": "Misc", "folderType": "shared"})
    assert r.status_code == 400
    assert r.get_json()["error"] == "Invalid folder type"


def test_parent_must_belong_to_user(client, logged_in):
    other = make_user(phone="+15550002222", email="bob@example.com")
    foreign = vault.create_folder(other.id, "Bob's")

    r = client.post('/api/folders', json={"name": "Mine", "parentId": foreign.id})
    assert r.status_code == 400
    assert r.get_json()["error"] == "Parent folder not found"

    # and other users' folders never show up in the list
    assert client.get('/api/folders').get_json()["folders"] == []
