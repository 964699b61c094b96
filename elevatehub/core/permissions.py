# elevatehub/core/permissions.py
from elevatehub.core.exceptions import ForbiddenError
from elevatehub.models.user import User, UserRoleEnum

_ROLE_LABELS = {
    UserRoleEnum.freelancer: "freelancers",
    UserRoleEnum.client: "clients",
    UserRoleEnum.admin: "admins",
}


def ensure_role(user: User, *roles: UserRoleEnum) -> None:
    """Raise ForbiddenError unless `user` holds one of `roles`."""
    if user.role in roles:
        return
    allowed = " or ".join(_ROLE_LABELS[r] for r in roles)
    raise ForbiddenError(f"Only {allowed} can perform this action")
