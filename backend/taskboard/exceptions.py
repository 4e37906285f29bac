"""Domain exceptions.

Services raise these; the handlers in taskboard.api.errors translate them
into HTTP responses so route code stays free of status-code plumbing.
"""

from typing import Any


class TaskboardError(Exception):
    """Base exception for domain errors."""

    status_code = 500

    def __init__(self, message: str, code: str = "TASKBOARD_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class NotFoundError(TaskboardError):
    """Referenced entity does not exist (or is not visible to the caller)."""

    status_code = 404

    def __init__(self, entity: str, entity_id: Any = None):
        self.entity = entity
        self.entity_id = entity_id
        message = f"{entity} not found" if entity_id is None else f"{entity} {entity_id} not found"
        super().__init__(message=message, code="NOT_FOUND")


class InvalidArgumentError(TaskboardError):
    """Malformed or out-of-range input rejected by a service."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message=message, code="INVALID_ARGUMENT")


class ValidationFailedError(TaskboardError):
    """Input failed one or more field-level rules."""

    status_code = 400

    def __init__(self, errors: list[dict[str, str]], message: str = "Validation failed"):
        self.errors = errors
        super().__init__(message=message, code="VALIDATION_FAILED")


class BusinessRuleError(TaskboardError):
    """Operation conflicts with the current state of the system.

    Raised for things like deleting a project that still has open work or
    adding a user who is already on the team.
    """

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message=message, code="BUSINESS_RULE_VIOLATION")


class AuthenticationError(TaskboardError):
    """Credentials or token are missing, invalid or expired."""

    status_code = 401

    def __init__(self, message: str = "Invalid credentials"):
        super().__init__(message=message, code="AUTHENTICATION_FAILED")


class PermissionDeniedError(TaskboardError):
    """Caller is authenticated but not allowed to perform the operation."""

    status_code = 403

    def __init__(self, message: str = "You do not have permission to perform this action"):
        super().__init__(message=message, code="PERMISSION_DENIED")
