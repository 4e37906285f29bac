"""Work item mutations, the audit trail and notification side effects."""

from datetime import timedelta
from uuid import uuid4

import pytest
import pytest_asyncio

from taskboard.db.base import utcnow
from taskboard.exceptions import NotFoundError, ValidationFailedError
from taskboard.models.enums import NotificationType, WorkItemLogAction, WorkItemStatus
from taskboard.repositories import NotificationRepository, WorkItemFilter


@pytest_asyncio.fixture
async def team(make_user, pm):
    alice = await make_user(first_name="Alice")
    bob = await make_user(first_name="Bob")
    return alice, bob


@pytest_asyncio.fixture
async def project(project_service, admin, pm, team):
    alice, bob = team
    return await project_service.create_project(
        {
            "name": "Apollo",
            "manager_id": pm.id,
            "team_member_ids": [alice.id, bob.id],
            "start_date": utcnow(),
        },
        actor=admin,
    )


async def notes(db, user, notification_type=None):
    return await NotificationRepository(db).get_by_user_id(
        user.id, notification_type=notification_type.value if notification_type else None
    )


async def create_item(service, project, actor, **data):
    return await service.create_work_item({"title": "Write docs", "project_id": project.id, **data}, actor)


async def test_status_walk_to_done(db, work_item_service, project, pm, team):
    alice, _ = team
    item = await create_item(work_item_service, project, pm, assigned_to_id=alice.id)
    assert item.status == WorkItemStatus.TODO

    item = await work_item_service.update_work_item_status(item.id, WorkItemStatus.IN_PROGRESS, alice)
    assert item.completed_at is None

    item = await work_item_service.update_work_item_status(item.id, WorkItemStatus.DONE, alice)
    assert item.completed_at is not None

    logs = await work_item_service.get_work_item_logs(item.id)
    status_logs = [log for log in logs if log.action == WorkItemLogAction.STATUS_CHANGED]
    assert len(status_logs) == 2
    assert {(log.old_value, log.new_value) for log in status_logs} == {
        ("todo", "in_progress"),
        ("in_progress", "done"),
    }

    completed_for_manager = await notes(db, pm, NotificationType.TASK_COMPLETED)
    assert len(completed_for_manager) == 1
    assert completed_for_manager[0].related_entity_id == item.id
    assert await notes(db, alice, NotificationType.TASK_COMPLETED) == []


async def test_create_rejects_past_due_date(work_item_service, project, pm):
    with pytest.raises(ValidationFailedError):
        await create_item(work_item_service, project, pm, due_date=utcnow() - timedelta(hours=1))


async def test_create_accepts_future_due_date(work_item_service, project, pm):
    due = utcnow() + timedelta(days=2)
    item = await create_item(work_item_service, project, pm, due_date=due)
    assert item.due_date == due
    assert not item.is_overdue


async def test_create_requires_existing_project(work_item_service, pm):
    with pytest.raises(NotFoundError):
        await work_item_service.create_work_item({"title": "Orphan", "project_id": uuid4()}, pm)


async def test_create_requires_active_assignee(work_item_service, project, pm, make_user):
    inactive = await make_user(is_active=False)
    with pytest.raises(NotFoundError, match="Assignee"):
        await create_item(work_item_service, project, pm, assigned_to_id=inactive.id)


async def test_create_writes_log_and_notifies_assignee(db, work_item_service, project, pm, team):
    alice, _ = team
    item = await create_item(work_item_service, project, pm, assigned_to_id=alice.id)

    logs = await work_item_service.get_work_item_logs(item.id)
    assert [log.action for log in logs] == [WorkItemLogAction.CREATED]
    assigned = await notes(db, alice, NotificationType.TASK_ASSIGNED)
    assert len(assigned) == 1
    assert assigned[0].action_url == f"/work-items/{item.id}"


async def test_self_assignment_is_silent(db, work_item_service, project, pm):
    await create_item(work_item_service, project, pm, assigned_to_id=pm.id)
    assert await notes(db, pm, NotificationType.TASK_ASSIGNED) == []


async def test_identical_update_changes_nothing(db, work_item_service, project, pm, team):
    alice, _ = team
    item = await create_item(
        work_item_service, project, pm, assigned_to_id=alice.id, tags=["docs"], priority="high"
    )
    logs_before = len(await work_item_service.get_work_item_logs(item.id))
    notes_before = len(await notes(db, alice))

    await work_item_service.update_work_item(
        item.id,
        {
            "title": item.title,
            "description": item.description,
            "assigned_to_id": alice.id,
            "priority": "high",
            "due_date": item.due_date,
            "estimated_hours": item.estimated_hours,
            "tags": ["docs"],
        },
        pm,
    )

    assert len(await work_item_service.get_work_item_logs(item.id)) == logs_before
    assert len(await notes(db, alice)) == notes_before


async def test_update_logs_one_entry_with_every_change(db, work_item_service, project, pm, team):
    alice, _ = team
    item = await create_item(work_item_service, project, pm, assigned_to_id=alice.id)

    item = await work_item_service.update_work_item(
        item.id, {"title": "Write better docs", "priority": "critical", "estimated_hours": 5}, pm
    )

    assert item.title == "Write better docs"
    updates = [
        log
        for log in await work_item_service.get_work_item_logs(item.id)
        if log.action == WorkItemLogAction.UPDATED
    ]
    assert len(updates) == 1
    log = updates[0]
    assert log.description == (
        "Title changed from 'Write docs' to 'Write better docs', "
        "Priority changed from 'medium' to 'critical', "
        "Estimated hours changed from 'none' to '5'"
    )
    assert log.field_name is None
    assert set(log.extra_data["changes"]) == {"title", "priority", "estimated_hours"}
    assert len(await notes(db, alice, NotificationType.TASK_UPDATED)) == 1


async def test_single_field_update_records_old_and_new(work_item_service, project, pm):
    item = await create_item(work_item_service, project, pm)
    await work_item_service.update_work_item(item.id, {"priority": "low"}, pm)

    [log] = [
        entry
        for entry in await work_item_service.get_work_item_logs(item.id)
        if entry.action == WorkItemLogAction.UPDATED
    ]
    assert (log.field_name, log.old_value, log.new_value) == ("priority", "medium", "low")


async def test_update_reassignment_notifies_new_assignee(db, work_item_service, project, pm, team):
    alice, bob = team
    item = await create_item(work_item_service, project, pm, assigned_to_id=alice.id)

    await work_item_service.update_work_item(item.id, {"assigned_to_id": bob.id}, pm)

    assert len(await notes(db, bob, NotificationType.TASK_ASSIGNED)) == 1
    assert await notes(db, alice, NotificationType.TASK_UPDATED) == []


async def test_update_reassignment_to_inactive_user_fails(work_item_service, project, pm, make_user):
    inactive = await make_user(is_active=False)
    item = await create_item(work_item_service, project, pm)
    with pytest.raises(NotFoundError):
        await work_item_service.update_work_item(item.id, {"assigned_to_id": inactive.id}, pm)
    assert (await work_item_service.get_work_item(item.id)).assigned_to_id is None


async def test_update_to_done_sends_completion(db, work_item_service, project, pm, team):
    alice, _ = team
    item = await create_item(work_item_service, project, pm, assigned_to_id=alice.id)

    item = await work_item_service.update_work_item(item.id, {"status": "done"}, alice)

    assert item.completed_at is not None
    assert len(await notes(db, pm, NotificationType.TASK_COMPLETED)) == 1


async def test_status_update_ignores_transition_graph(work_item_service, project, pm):
    # todo -> done skips in_progress; this path applies any target status
    item = await create_item(work_item_service, project, pm)
    item = await work_item_service.update_work_item_status(item.id, WorkItemStatus.DONE, pm)
    assert item.status == WorkItemStatus.DONE


async def test_reopening_clears_completed_at(work_item_service, project, pm):
    item = await create_item(work_item_service, project, pm)
    await work_item_service.update_work_item_status(item.id, WorkItemStatus.DONE, pm)
    item = await work_item_service.update_work_item_status(item.id, WorkItemStatus.IN_PROGRESS, pm)
    assert item.completed_at is None


async def test_same_status_is_a_no_op(work_item_service, project, pm):
    item = await create_item(work_item_service, project, pm)
    await work_item_service.update_work_item_status(item.id, WorkItemStatus.TODO, pm)
    logs = await work_item_service.get_work_item_logs(item.id)
    assert [log.action for log in logs] == [WorkItemLogAction.CREATED]


async def test_assign_logs_names(db, work_item_service, project, pm, team):
    alice, bob = team
    item = await create_item(work_item_service, project, pm, assigned_to_id=alice.id)

    await work_item_service.assign_work_item(item.id, bob.id, pm)
    await work_item_service.assign_work_item(item.id, bob.id, pm)

    logs = [
        log
        for log in await work_item_service.get_work_item_logs(item.id)
        if log.action == WorkItemLogAction.ASSIGNEE_CHANGED
    ]
    assert len(logs) == 1
    assert logs[0].description == f"Assignee changed from '{alice.full_name}' to '{bob.full_name}'"
    assert len(await notes(db, bob, NotificationType.TASK_ASSIGNED)) == 1


async def test_comments(work_item_service, project, pm):
    item = await create_item(work_item_service, project, pm)

    comment = await work_item_service.add_comment(item.id, "  Looks good  ", pm)
    assert comment.content == "Looks good"

    with pytest.raises(ValidationFailedError):
        await work_item_service.add_comment(item.id, "   ", pm)

    item = await work_item_service.get_work_item(item.id)
    assert [c.content for c in item.comments] == ["Looks good"]
    actions = [log.action for log in await work_item_service.get_work_item_logs(item.id)]
    assert WorkItemLogAction.COMMENT_ADDED in actions


async def test_delete_keeps_audit_trail(work_item_service, project, pm):
    item = await create_item(work_item_service, project, pm)

    await work_item_service.delete_work_item(item.id, pm)

    with pytest.raises(NotFoundError):
        await work_item_service.get_work_item(item.id)
    actions = [log.action for log in await work_item_service.get_work_item_logs(item.id)]
    assert WorkItemLogAction.DELETED in actions


async def test_overdue_and_due_soon(db, work_item_service, project, pm):
    late = await create_item(work_item_service, project, pm, title="Late")
    late.due_date = utcnow() - timedelta(days=1)
    await work_item_service.work_items.update(late)
    soon = await create_item(
        work_item_service, project, pm, title="Soon", due_date=utcnow() + timedelta(days=1)
    )
    await create_item(work_item_service, project, pm, title="Later", due_date=utcnow() + timedelta(days=30))

    assert [i.id for i in await work_item_service.get_overdue_work_items()] == [late.id]
    assert [i.id for i in await work_item_service.get_due_soon_work_items(3)] == [soon.id]

    summary = await work_item_service.get_summary(project.id)
    assert summary.total == 3
    assert summary.overdue == 1


async def test_filter_by_tags_and_text(work_item_service, project, pm):
    tagged = await create_item(work_item_service, project, pm, title="API docs", tags=["Docs", "api"])
    await create_item(work_item_service, project, pm, title="Fix login", tags=["bug"])

    items, total = await work_item_service.filter_work_items(WorkItemFilter(tags=["docs"]))
    assert total == 1 and items[0].id == tagged.id

    items, total = await work_item_service.filter_work_items(WorkItemFilter(term="login"))
    assert total == 1 and items[0].title == "Fix login"

    items, total = await work_item_service.filter_work_items(
        WorkItemFilter(project_id=project.id), skip=1, limit=1
    )
    assert total == 2 and len(items) == 1


async def test_deadline_reminders_sent_once_per_day(db, work_item_service, project, pm, team):
    alice, bob = team
    soon = utcnow() + timedelta(hours=12)
    due = await create_item(work_item_service, project, pm, assigned_to_id=alice.id, due_date=soon)
    await create_item(work_item_service, project, pm, assigned_to_id=bob.id, due_date=utcnow() + timedelta(days=5))
    await create_item(work_item_service, project, pm, due_date=soon)
    finished = await create_item(work_item_service, project, pm, assigned_to_id=bob.id, due_date=soon)
    await work_item_service.update_work_item_status(finished.id, WorkItemStatus.DONE, pm)

    assert await work_item_service.send_deadline_reminders(days=1) == 1
    assert await work_item_service.send_deadline_reminders(days=1) == 0

    reminders = await notes(db, alice, NotificationType.DEADLINE_REMINDER)
    assert [n.related_entity_id for n in reminders] == [due.id]
    assert await notes(db, bob, NotificationType.DEADLINE_REMINDER) == []


async def test_null_for_required_fields_means_unchanged(work_item_service, project, pm):
    item = await create_item(work_item_service, project, pm, priority="high")

    updated = await work_item_service.update_work_item(
        item.id, {"status": None, "priority": None, "title": None, "description": "Outline"}, pm
    )

    assert (updated.status, updated.priority, updated.title) == ("todo", "high", "Write docs")
    assert updated.description == "Outline"
    logs = await work_item_service.get_work_item_logs(item.id)
    assert [log.field_name for log in logs if log.action == WorkItemLogAction.UPDATED] == ["description"]


async def test_reassignment_in_update_sends_assignment_not_update(db, work_item_service, project, pm, team):
    alice, bob = team
    item = await create_item(work_item_service, project, pm, assigned_to_id=alice.id)

    await work_item_service.update_work_item(item.id, {"assigned_to_id": bob.id}, pm)

    assigned = await notes(db, bob, NotificationType.TASK_ASSIGNED)
    assert [n.related_entity_id for n in assigned] == [item.id]
    assert await notes(db, bob, NotificationType.TASK_UPDATED) == []
    assert await notes(db, alice, NotificationType.TASK_UPDATED) == []
