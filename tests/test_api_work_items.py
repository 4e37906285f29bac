"""Work item endpoints."""

from datetime import datetime, timedelta, timezone

import pytest_asyncio

from tests.conftest import auth_headers


@pytest_asyncio.fixture
async def team(make_user):
    return await make_user(first_name="Alice"), await make_user(first_name="Bob")


@pytest_asyncio.fixture
async def project(client, admin, pm, team):
    alice, bob = team
    response = await client.post(
        "/api/projects/",
        json={
            "name": "Apollo",
            "manager_id": str(pm.id),
            "team_member_ids": [str(alice.id), str(bob.id)],
            "start_date": datetime.now(timezone.utc).isoformat(),
        },
        headers=auth_headers(admin),
    )
    return response.json()


async def create_item(client, project, actor, **fields):
    response = await client.post(
        "/api/work-items/",
        json={"title": "Write docs", "project_id": project["id"], **fields},
        headers=auth_headers(actor),
    )
    assert response.status_code == 201, response.text
    return response.json()


async def test_example_scenario(client, project, pm, team):
    alice, _ = team
    item = await create_item(client, project, pm, assigned_to_id=str(alice.id))
    assert item["status"] == "todo"
    url = f"/api/work-items/{item['id']}"

    response = await client.patch(f"{url}/status", json={"status": "in_progress"}, headers=auth_headers(alice))
    assert response.json()["completed_at"] is None
    response = await client.patch(f"{url}/status", json={"status": "done"}, headers=auth_headers(alice))
    assert response.json()["completed_at"] is not None

    logs = (await client.get(f"{url}/logs", headers=auth_headers(pm))).json()
    assert [log["action"] for log in logs].count("status_changed") == 2

    manager_notes = (await client.get("/api/notifications/", params={"type": "task_completed"}, headers=auth_headers(pm))).json()
    assert len(manager_notes) == 1
    assert manager_notes[0]["related_entity_id"] == item["id"]
    alice_notes = (await client.get("/api/notifications/", params={"type": "task_completed"}, headers=auth_headers(alice))).json()
    assert alice_notes == []


async def test_past_due_date_rejected(client, project, pm):
    response = await client.post(
        "/api/work-items/",
        json={
            "title": "Late",
            "project_id": project["id"],
            "due_date": (datetime.now(timezone.utc) - timedelta(days=1)).isoformat(),
        },
        headers=auth_headers(pm),
    )
    assert response.status_code == 400
    assert response.json()["errors"] == [
        {"field": "due_date", "message": "Due date must be in the future"}
    ]


async def test_outsider_cannot_touch_items(client, project, pm, make_user):
    outsider = await make_user()
    item = await create_item(client, project, pm)

    response = await client.get(f"/api/work-items/{item['id']}", headers=auth_headers(outsider))
    assert response.status_code == 403
    assert response.json() == {"message": "You do not have access to this project", "error": "PERMISSION_DENIED"}
    response = await client.post(
        "/api/work-items/", json={"title": "Sneaky", "project_id": project["id"]}, headers=auth_headers(outsider)
    )
    assert response.status_code == 403

    listing = (await client.get("/api/work-items/", headers=auth_headers(outsider))).json()
    assert listing["total"] == 0


async def test_identical_update_writes_no_log(client, project, pm):
    item = await create_item(client, project, pm, priority="high")
    url = f"/api/work-items/{item['id']}"

    response = await client.put(url, json={"title": "Write docs", "priority": "high"}, headers=auth_headers(pm))
    assert response.status_code == 200

    logs = (await client.get(f"{url}/logs", headers=auth_headers(pm))).json()
    assert [log["action"] for log in logs] == ["created"]


async def test_update_and_assign(client, project, pm, team):
    alice, bob = team
    item = await create_item(client, project, pm, assigned_to_id=str(alice.id))
    url = f"/api/work-items/{item['id']}"

    response = await client.put(url, json={"title": "Docs v2", "estimated_hours": 3}, headers=auth_headers(pm))
    assert response.json()["title"] == "Docs v2"

    response = await client.patch(f"{url}/assign", json={"assigned_to_id": str(bob.id)}, headers=auth_headers(pm))
    assert response.json()["assigned_to_id"] == str(bob.id)

    actions = [log["action"] for log in (await client.get(f"{url}/logs", headers=auth_headers(pm))).json()]
    assert sorted(actions) == ["assignee_changed", "created", "updated"]

    assigned = (
        await client.get("/api/notifications/", params={"type": "task_assigned"}, headers=auth_headers(bob))
    ).json()
    assert [n["related_entity_id"] for n in assigned] == [item["id"]]


async def test_comments_endpoint(client, project, pm, team):
    alice, _ = team
    item = await create_item(client, project, pm)
    url = f"/api/work-items/{item['id']}"

    response = await client.post(f"{url}/comments", json={"content": "On it"}, headers=auth_headers(alice))
    assert response.status_code == 201
    assert response.json()["user_id"] == str(alice.id)

    fetched = (await client.get(url, headers=auth_headers(pm))).json()
    assert [c["content"] for c in fetched["comments"]] == ["On it"]


async def test_list_filters_and_pagination(client, project, pm, team):
    alice, _ = team
    await create_item(client, project, pm, title="Fix login", tags=["bug"], assigned_to_id=str(alice.id))
    await create_item(client, project, pm, title="Write docs", tags=["docs"])
    await create_item(client, project, pm, title="Docs review", tags=["docs"], priority="critical")

    body = (await client.get("/api/work-items/", params={"tags": "docs"}, headers=auth_headers(pm))).json()
    assert body["total"] == 2

    body = (await client.get("/api/work-items/", params={"priority": "critical"}, headers=auth_headers(pm))).json()
    assert [i["title"] for i in body["items"]] == ["Docs review"]

    body = (await client.get("/api/work-items/", params={"page_size": 2, "page": 2}, headers=auth_headers(pm))).json()
    assert (body["total"], body["pages"], len(body["items"])) == (3, 2, 1)

    mine = (await client.get("/api/work-items/my", headers=auth_headers(alice))).json()
    assert [i["title"] for i in mine] == ["Fix login"]


async def test_summary_and_delete_permissions(client, project, pm, team):
    alice, _ = team
    item = await create_item(client, project, pm)

    assert (await client.get("/api/work-items/summary", headers=auth_headers(alice))).status_code == 403
    summary = (await client.get("/api/work-items/summary", params={"project_id": project["id"]}, headers=auth_headers(pm))).json()
    assert summary["total"] == 1

    url = f"/api/work-items/{item['id']}"
    assert (await client.delete(url, headers=auth_headers(alice))).status_code == 403
    assert (await client.delete(url, headers=auth_headers(pm))).status_code == 204
    assert (await client.get(url, headers=auth_headers(pm))).status_code == 404


async def test_update_ignores_null_for_required_fields(client, project, pm):
    item = await create_item(client, project, pm, priority="high")
    url = f"/api/work-items/{item['id']}"

    response = await client.put(
        url, json={"status": None, "priority": None, "title": None}, headers=auth_headers(pm)
    )
    assert response.status_code == 200
    body = response.json()
    assert (body["status"], body["priority"], body["title"]) == ("todo", "high", "Write docs")

    logs = (await client.get(f"{url}/logs", headers=auth_headers(pm))).json()
    assert [log["action"] for log in logs] == ["created"]
