from .exceptions import ForbiddenError
from .models import UserRole
from .schemas import Actor


def ensure_role(actor: Actor, *roles: UserRole) -> None:
    """Raises ForbiddenError unless the actor holds one of ``roles``."""
    if actor.role not in roles:
        allowed = " or ".join(r.value for r in roles)
        raise ForbiddenError(f"This action requires the {allowed} role")
