"""Project endpoints."""

from datetime import datetime, timedelta, timezone

import pytest_asyncio

from tests.conftest import auth_headers


def project_payload(manager, members=(), **overrides):
    payload = {
        "name": "Apollo",
        "manager_id": str(manager.id),
        "team_member_ids": [str(m.id) for m in members],
        "start_date": datetime.now(timezone.utc).isoformat(),
        "priority": "high",
    }
    payload.update(overrides)
    return payload


@pytest_asyncio.fixture
async def project(client, admin, pm, dev):
    response = await client.post(
        "/api/projects/", json=project_payload(pm, [dev]), headers=auth_headers(admin)
    )
    assert response.status_code == 201
    return response.json()


async def test_create_project_response(project, pm, dev):
    assert project["status"] == "planning"
    assert project["manager"]["id"] == str(pm.id)
    assert project["team_member_ids"] == [str(dev.id)]
    assert project["team_members"][0]["email"] == dev.email


async def test_developer_cannot_create_project(client, pm, dev):
    response = await client.post(
        "/api/projects/", json=project_payload(pm), headers=auth_headers(dev)
    )
    assert response.status_code == 403


async def test_create_project_rejects_bad_dates(client, admin, pm):
    start = datetime.now(timezone.utc)
    response = await client.post(
        "/api/projects/",
        json=project_payload(
            pm, start_date=start.isoformat(), end_date=(start - timedelta(days=2)).isoformat()
        ),
        headers=auth_headers(admin),
    )
    assert response.status_code == 400
    assert response.json()["error"] == "INVALID_ARGUMENT"


async def test_get_project_includes_stats(client, project, dev):
    response = await client.get(f"/api/projects/{project['id']}", headers=auth_headers(dev))
    assert response.status_code == 200
    assert response.json()["stats"] == {
        "total_work_items": 0,
        "by_status": {},
        "overdue": 0,
        "completion_rate": 0.0,
    }


async def test_unknown_project_is_404(client, dev):
    response = await client.get(
        "/api/projects/00000000-0000-0000-0000-000000000000", headers=auth_headers(dev)
    )
    assert response.status_code == 404
    assert response.json()["error"] == "NOT_FOUND"


async def test_update_project_owner_rules(client, project, pm, make_user):
    other_manager = await make_user(role="manager")

    response = await client.put(
        f"/api/projects/{project['id']}", json={"name": "Nope"}, headers=auth_headers(other_manager)
    )
    assert response.status_code == 403

    response = await client.put(
        f"/api/projects/{project['id']}", json={"name": "Artemis"}, headers=auth_headers(pm)
    )
    assert response.status_code == 200
    assert response.json()["name"] == "Artemis"


async def test_update_project_ignores_null_for_required_fields(client, project, pm):
    response = await client.put(
        f"/api/projects/{project['id']}",
        json={"priority": None, "name": None, "description": "Moon"},
        headers=auth_headers(pm),
    )
    assert response.status_code == 200
    body = response.json()
    assert (body["priority"], body["name"], body["description"]) == ("high", "Apollo", "Moon")

async def test_status_change(client, project, pm, dev):
    url = f"/api/projects/{project['id']}/status"
    assert (await client.patch(url, json={"status": "in_progress"}, headers=auth_headers(dev))).status_code == 403
    response = await client.patch(url, json={"status": "in_progress"}, headers=auth_headers(pm))
    assert response.json()["status"] == "in_progress"


async def test_team_membership_endpoints(client, project, pm, dev, make_user):
    newcomer = await make_user()
    base = f"/api/projects/{project['id']}/team-members"

    response = await client.post(base, json={"user_id": str(newcomer.id)}, headers=auth_headers(pm))
    assert response.status_code == 200
    assert str(newcomer.id) in response.json()["team_member_ids"]

    response = await client.post(base, json={"user_id": str(dev.id)}, headers=auth_headers(pm))
    assert response.status_code == 400

    response = await client.delete(f"{base}/{pm.id}", headers=auth_headers(pm))
    assert response.status_code == 400
    assert response.json()["message"] == "The project manager cannot be removed from the team"

    response = await client.delete(f"{base}/{newcomer.id}", headers=auth_headers(pm))
    assert response.status_code == 200
    assert str(newcomer.id) not in response.json()["team_member_ids"]


async def test_project_listings(client, project, admin, pm, dev, make_user):
    outsider = await make_user()

    mine = (await client.get("/api/projects/my-projects", headers=auth_headers(dev))).json()
    assert [p["id"] for p in mine] == [project["id"]]
    managed = (await client.get("/api/projects/managed-by-me", headers=auth_headers(pm))).json()
    assert [p["id"] for p in managed] == [project["id"]]
    assert (await client.get("/api/projects/my-projects", headers=auth_headers(outsider))).json() == []

    active = (await client.get("/api/projects/active", headers=auth_headers(dev))).json()
    assert [p["id"] for p in active] == [project["id"]]
    filtered = await client.get("/api/projects/", params={"status": "completed"}, headers=auth_headers(admin))
    assert filtered.json() == []


async def test_check_access_and_stats_access(client, project, dev, make_user):
    outsider = await make_user()
    url = f"/api/projects/{project['id']}"

    assert (await client.get(f"{url}/check-access", headers=auth_headers(dev))).json() == {"has_access": True}
    assert (await client.get(f"{url}/check-access", headers=auth_headers(outsider))).json() == {"has_access": False}
    assert (await client.get(f"{url}/stats", headers=auth_headers(outsider))).status_code == 403


async def test_delete_project_guard(client, project, pm):
    headers = auth_headers(pm)
    item = (
        await client.post(
            "/api/work-items/", json={"title": "Open", "project_id": project["id"]}, headers=headers
        )
    ).json()

    response = await client.delete(f"/api/projects/{project['id']}", headers=headers)
    assert response.status_code == 400
    assert response.json()["message"] == "Cannot delete project with active work items"

    await client.patch(f"/api/work-items/{item['id']}/status", json={"status": "cancelled"}, headers=headers)
    response = await client.delete(f"/api/projects/{project['id']}", headers=headers)
    assert response.status_code == 204
