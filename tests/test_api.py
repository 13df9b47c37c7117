import pytest
from fastapi.testclient import TestClient

from dvpanel.config import Settings
from dvpanel.errors import ConfigurationError
from dvpanel.main import create_app


@pytest.fixture
def client(panel_settings):
    with TestClient(create_app(panel_settings)) as c:
        yield c


def test_ping_is_not_cached(client):
    r = client.get("/api/ping")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}
    assert r.headers["cache-control"] == "no-store"
    assert r.headers["x-content-type-options"] == "nosniff"


def test_list_root(client):
    r = client.get("/api/panel-daemon/files", params={"path": "/"})
    assert r.status_code == 200
    body = r.json()
    assert body["path"] == "/"
    assert [f["name"] for f in body["files"]] == ["sub", "index.txt"]


def test_read_and_write_file(client, www):
    r = client.post("/api/panel-daemon/file", json={"path": "/sub/page.html", "content": "<p>new</p>"})
    assert r.status_code == 200
    assert r.json()["success"] is True
    assert (www / "sub" / "page.html").read_text(encoding="utf-8") == "<p>new</p>"

    r = client.get("/api/panel-daemon/file", params={"path": "/sub/page.html"})
    assert r.status_code == 200
    assert r.text == "<p>new</p>"


@pytest.mark.parametrize("path", ["/../../etc/passwd", "../secret", "/sub/../../x"])
def test_traversal_is_forbidden_without_leaking_paths(client, www, path):
    r = client.get("/api/panel-daemon/file", params={"path": path})
    assert r.status_code == 403
    body = r.json()
    assert body["error"] == "access_denied"
    assert str(www) not in r.text


def test_missing_file_is_404(client):
    r = client.get("/api/panel-daemon/file", params={"path": "/missing.txt"})
    assert r.status_code == 404
    assert r.json()["error"] == "not_found"


def test_create_conflict_is_409(client):
    r = client.post("/api/panel-daemon/create", json={"path": "/index.txt", "type": "file"})
    assert r.status_code == 409


def test_create_and_chmod(client, www):
    r = client.post("/api/panel-daemon/create", json={"path": "/assets", "type": "folder"})
    assert r.status_code == 200
    assert (www / "assets").is_dir()

    r = client.post("/api/panel-daemon/permissions", json={"path": "/assets", "mode": "750"})
    assert r.status_code == 200

    r = client.post("/api/panel-daemon/permissions", json={"path": "/assets", "mode": "9"})
    assert r.status_code == 400


def test_snapshot_flow(client):
    base = "/api/panel-daemon/snapshots"
    for i in range(3):
        r = client.post(base, json={"filePath": "/index.txt", "content": f"v{i}", "language": "plaintext"})
        assert r.status_code == 200

    snapshots = r.json()["snapshots"]
    assert [s["content"] for s in snapshots] == ["v2", "v1", "v0"]
    oldest = snapshots[-1]

    r = client.post(f"{base}/lock", json={"filePath": "/index.txt", "snapshotId": oldest["id"], "lock": True})
    assert r.status_code == 200
    assert next(s for s in r.json()["snapshots"] if s["id"] == oldest["id"])["isLocked"] is True

    r = client.get(f"{base}/{oldest['id']}", params={"filePath": "/index.txt"})
    assert r.status_code == 200
    assert r.json()["content"] == "v0"

    r = client.delete(base, params={"filePath": "/index.txt", "snapshotId": oldest["id"]})
    assert r.status_code == 200
    assert len(r.json()["snapshots"]) == 2

    r = client.get(base, params={"filePath": "/index.txt"})
    assert [s["content"] for s in r.json()["snapshots"]] == ["v2", "v1"]


def test_snapshot_for_missing_file_is_404(client):
    r = client.post(
        "/api/panel-daemon/snapshots", json={"filePath": "/nope.txt", "content": "x", "language": "plaintext"}
    )
    assert r.status_code == 404


def test_lock_unknown_snapshot_is_404(client):
    r = client.post(
        "/api/panel-daemon/snapshots/lock", json={"filePath": "/index.txt", "snapshotId": "nope", "lock": True}
    )
    assert r.status_code == 404


def test_settings_endpoints(client):
    r = client.get("/api/settings")
    assert r.status_code == 200
    assert r.json()["data"]["panelPort"] == "27407"

    r = client.post("/api/settings", json={"panelPort": "9000", "debugMode": True})
    assert r.status_code == 200
    assert r.json()["data"]["panelPort"] == "9000"

    r = client.post("/api/settings", json={"panelPort": "nope"})
    assert r.status_code == 400
    assert r.json()["error"] == "invalid_request"


def test_logs_record_panel_actions(client):
    client.post("/api/panel-daemon/create", json={"path": "/made.txt", "type": "file"})

    r = client.get("/api/logs/Owner-Logs.json", params={"limit": 5})
    assert r.status_code == 200
    actions = [entry["action"] for entry in r.json()["logs"]]
    assert actions[0] == "FILE_CREATED"
    assert "PANEL_STARTED" in actions


def test_unknown_log_file_is_400(client):
    r = client.get("/api/logs/secrets.json")
    assert r.status_code == 400


def test_owner_is_bootstrapped_from_settings(panel_settings):
    s = panel_settings.model_copy(update={"owner_username": "root", "owner_password": "owner-password"})
    with TestClient(create_app(s)) as c:
        user = c.app.state.container.users.find_user("root")
    assert user is not None
    assert user.role == "Owner"


def test_startup_fails_without_installation_code(tmp_path):
    s = Settings(installation_code=None, data_path=str(tmp_path / "data"), file_manager_base_dir=str(tmp_path))
    with pytest.raises(ConfigurationError):
        with TestClient(create_app(s)):
            pass
