"""Work item input rules and the status transition graph."""

from datetime import datetime
from typing import Any

from taskboard.db.base import utcnow
from taskboard.exceptions import InvalidArgumentError, ValidationFailedError
from taskboard.models.enums import WorkItemStatus

TITLE_MAX_LENGTH = 200
DESCRIPTION_MAX_LENGTH = 2000

# Reopening a done item and reactivating a cancelled one are allowed
STATUS_TRANSITIONS: dict[WorkItemStatus, frozenset[WorkItemStatus]] = {
    WorkItemStatus.TODO: frozenset({WorkItemStatus.IN_PROGRESS, WorkItemStatus.CANCELLED}),
    WorkItemStatus.IN_PROGRESS: frozenset(
        {WorkItemStatus.DONE, WorkItemStatus.TODO, WorkItemStatus.CANCELLED}
    ),
    WorkItemStatus.DONE: frozenset({WorkItemStatus.IN_PROGRESS}),
    WorkItemStatus.CANCELLED: frozenset({WorkItemStatus.TODO}),
}


def is_valid_status_transition(current: str, new: str) -> bool:
    current_status, new_status = WorkItemStatus(current), WorkItemStatus(new)
    if current_status == new_status:
        return True
    return new_status in STATUS_TRANSITIONS.get(current_status, frozenset())


def validate_status_transition(current: str, new: str) -> None:
    """Raise InvalidArgumentError if `current` -> `new` is not an allowed move."""
    if not is_valid_status_transition(current, new):
        raise InvalidArgumentError(
            f"Invalid status transition from {WorkItemStatus(current).value} "
            f"to {WorkItemStatus(new).value}"
        )


def _check_text(errors: list[dict[str, str]], data: dict[str, Any], required: bool) -> None:
    if "title" in data or required:
        title = data.get("title")
        if title is None or not str(title).strip():
            errors.append({"field": "title", "message": "Title is required"})
        elif len(title) > TITLE_MAX_LENGTH:
            errors.append(
                {"field": "title", "message": f"Title cannot exceed {TITLE_MAX_LENGTH} characters"}
            )

    description = data.get("description")
    if description is not None and len(description) > DESCRIPTION_MAX_LENGTH:
        errors.append(
            {
                "field": "description",
                "message": f"Description cannot exceed {DESCRIPTION_MAX_LENGTH} characters",
            }
        )


def _check_due_date(errors: list[dict[str, str]], due_date: datetime | None) -> None:
    if due_date is not None and due_date <= utcnow():
        errors.append({"field": "due_date", "message": "Due date must be in the future"})


def validate_work_item_create(data: dict[str, Any]) -> None:
    errors: list[dict[str, str]] = []
    _check_text(errors, data, required=True)
    if not data.get("project_id"):
        errors.append({"field": "project_id", "message": "Project is required"})
    _check_due_date(errors, data.get("due_date"))
    if errors:
        raise ValidationFailedError(errors)


def validate_work_item_update(changes: dict[str, Any], current_due_date: datetime | None) -> None:
    """Validate a sparse update payload.

    An unchanged due date is not re-checked, so resubmitting an item whose
    deadline has already passed is still accepted.
    """
    errors: list[dict[str, str]] = []
    _check_text(errors, changes, required=False)
    if "due_date" in changes and changes["due_date"] != current_due_date:
        _check_due_date(errors, changes["due_date"])

    estimated = changes.get("estimated_hours")
    if estimated is not None and estimated <= 0:
        errors.append(
            {"field": "estimated_hours", "message": "Estimated hours must be greater than 0"}
        )
    actual = changes.get("actual_hours")
    if actual is not None and actual < 0:
        errors.append({"field": "actual_hours", "message": "Actual hours cannot be negative"})

    if errors:
        raise ValidationFailedError(errors)
