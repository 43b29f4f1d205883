import pytest

from conftest import make_client


@pytest.mark.anyio
async def test_project_and_tasks(client, auth):
    c = await make_client(client, auth)
    r = await client.post("/api/projects/", json={"name": "Refonte", "client_id": c["id"], "status": "active"},
                          headers=auth)
    assert r.status_code == 200
    project = r.json()
    await client.post("/api/projects/", json={"name": "Archive", "status": "done"}, headers=auth)

    r = await client.get("/api/projects/active", headers=auth)
    assert [p["name"] for p in r.json()] == ["Refonte"]

    r = await client.post(f"/api/projects/{project['id']}/tasks", json={"name": "Maquette"}, headers=auth)
    task = r.json()
    assert task["completed"] is False

    r = await client.patch(f"/api/tasks/{task['id']}", json={"completed": True}, headers=auth)
    assert r.json()["completed"] is True

    r = await client.get(f"/api/projects/{project['id']}/tasks", headers=auth)
    assert [t["name"] for t in r.json()] == ["Maquette"]

    r = await client.delete(f"/api/projects/{project['id']}", headers=auth)
    assert r.status_code == 204
    r = await client.patch(f"/api/tasks/{task['id']}", json={"completed": False}, headers=auth)
    assert r.status_code == 404


@pytest.mark.anyio
async def test_project_unknown_client(client, auth):
    r = await client.post("/api/projects/", json={"name": "Orphelin", "client_id": 424242}, headers=auth)
    assert r.status_code == 404


@pytest.mark.anyio
async def test_tracked_time_blocks_deletion(client, auth):
    project = (await client.post("/api/projects/", json={"name": "Audit"}, headers=auth)).json()
    task = (await client.post(f"/api/projects/{project['id']}/tasks", json={"name": "Entretiens"},
                              headers=auth)).json()
    entry = {"task_id": task["id"], "start_time": "2024-03-01T09:00:00Z", "end_time": "2024-03-01T10:00:00Z"}
    r = await client.post("/api/time-entries/", json=entry, headers=auth)
    assert r.status_code == 200, r.text
    entry_id = r.json()["id"]

    # saisie rattachée à la tâche seulement : le projet est quand même protégé
    r = await client.delete(f"/api/projects/{project['id']}", headers=auth)
    assert r.status_code == 422
    assert r.json()["detail"] == "Project still has time entries"
    r = await client.delete(f"/api/tasks/{task['id']}", headers=auth)
    assert r.status_code == 422
    assert r.json()["detail"] == "Task still has time entries"

    r = await client.delete(f"/api/time-entries/{entry_id}", headers=auth)
    assert r.status_code == 204
    r = await client.delete(f"/api/tasks/{task['id']}", headers=auth)
    assert r.status_code == 204
    r = await client.delete(f"/api/projects/{project['id']}", headers=auth)
    assert r.status_code == 204
