"""
Platform-wide exception hierarchy.

Services raise these types; blueprints register handlers against them once
and get consistent HTTP status codes everywhere.

Usage:
    from app.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Document", resource_id=42)
    raise InvalidReferenceError("Task framework does not match its progress row")
    raise PartialFailureError("Task", task.id, "progress_recompute", entity=task.to_dict())
"""


class NotFoundError(Exception):
    """Raised when a referenced entity does not exist.

    Never retried; surfaced to the caller verbatim.

    Args:
        resource: Human-readable entity name (e.g. "Task", "Document").
        resource_id: The PK that was looked up.
    """

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when input is well-formed but violates a business rule.

    Maps to HTTP 422 in blueprint error handlers.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown for structured API responses.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class InvalidReferenceError(ValidationError):
    """Raised when referenced entities exist but are inconsistent with each other.

    Example: a task whose framework differs from its compliance-progress
    row's framework, or a reply whose parent belongs to another document.
    """


class ConflictError(Exception):
    """Raised when an insert collides with a unique constraint and cannot be
    resolved by re-reading the existing row.

    Maps to HTTP 409.

    Args:
        resource: Model name.
        field: The unique field (or field combination) that collided.
        value: The conflicting value.
    """

    def __init__(self, resource: str, field: str, value: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        msg = f"{resource} with {field}={value!r} already exists"
        super().__init__(msg)


class PartialFailureError(Exception):
    """Raised when a primary write committed but its dependent side effect failed.

    The caller must be able to tell this apart from a failed mutation: the
    entity WAS saved, only derived state (progress counters, version history)
    may be stale until the next recompute.

    Args:
        resource: Model name of the committed entity.
        resource_id: PK of the committed entity.
        side_effect: Machine name of the failed step ("progress_recompute",
                     "version_append").
        entity: Serialized committed entity, returned to the client.
        cause: The underlying exception.
    """

    committed = True

    def __init__(
        self,
        resource: str,
        resource_id: int | None,
        side_effect: str,
        entity: dict | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.resource = resource
        self.resource_id = resource_id
        self.side_effect = side_effect
        self.entity = entity or {}
        self.cause = cause
        super().__init__(
            f"{resource} id={resource_id} was saved but {side_effect} failed"
        )
