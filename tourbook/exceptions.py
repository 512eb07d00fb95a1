"""
Typed errors raised by the tourbook core.

Every error carries an HTTP ``status_code`` and a machine-readable ``code`` so
the API layer can render it without parsing messages:

    TourbookError
    +-- NotFoundError              404  entity absent or not visible to caller
    +-- ForbiddenError             403  authenticated but not allowed
    +-- InvalidInputError          400  malformed or out-of-range field
    +-- InvalidOperationError      400  illegal transition / business rule
    |   +-- InvalidTransitionError
    |   +-- WorkloadExceededError
    |   +-- InsufficientSeatsError
    +-- ConflictError              409  unique constraint violation
    |   +-- DuplicateSlugError
    +-- InternalError              500  storage failure
"""

from collections.abc import Iterable


class TourbookError(Exception):
    status_code = 500
    code = "error"
    default_detail = "An error occurred."

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class NotFoundError(TourbookError):
    status_code = 404
    code = "not_found"
    default_detail = "Resource not found."


class ForbiddenError(TourbookError):
    status_code = 403
    code = "forbidden"
    default_detail = "You do not have permission to perform this action."


class InvalidInputError(TourbookError):
    status_code = 400
    code = "invalid_input"
    default_detail = "Invalid input."


class InvalidOperationError(TourbookError):
    status_code = 400
    code = "invalid_operation"
    default_detail = "Operation not allowed in the current state."


class InvalidTransitionError(InvalidOperationError):
    code = "invalid_transition"

    def __init__(self, current: str, target: str, allowed: Iterable[str]):
        self.current = current
        self.target = target
        self.allowed = tuple(allowed)
        super().__init__(
            f"Invalid transition from '{current}' to '{target}'. "
            f"Allowed: {', '.join(self.allowed) or 'none'}"
        )


class WorkloadExceededError(InvalidOperationError):
    code = "workload_exceeded"

    def __init__(self, guide_id: int, active_count: int, limit: int):
        self.guide_id = guide_id
        self.active_count = active_count
        self.limit = limit
        super().__init__(
            f"Tour guide has too many active requests ({active_count}/{limit}). "
            "Please choose another tour guide."
        )


class InsufficientSeatsError(InvalidOperationError):
    code = "insufficient_seats"

    def __init__(self, available: int, requested: int):
        self.available = available
        self.requested = requested
        super().__init__(f"Only {available} seats available")


class ConflictError(TourbookError):
    status_code = 409
    code = "conflict"
    default_detail = "Resource already exists."


class DuplicateSlugError(ConflictError):
    code = "duplicate_slug"

    def __init__(self, slug: str):
        self.slug = slug
        super().__init__(f"A package with this title already exists (slug '{slug}')")


class InternalError(TourbookError):
    status_code = 500
    code = "internal_error"
    default_detail = "Internal storage error."
