"""Role-based authorization for quiz operations.

Every route resolves the caller's identity from request headers and asks
`authorize` whether the action is allowed. Authentication itself happens
upstream; this module trusts the `X-User-Id` / `X-User-Role` headers.
"""

from dataclasses import dataclass
from typing import Callable, Dict, FrozenSet, Optional

from fastapi import Depends, Header, HTTPException, status

from lms_quiz.errors import ForbiddenError

ADMIN = "ADMIN"
INSTRUCTOR = "INSTRUCTOR"
USER = "USER"
ROLES = frozenset({ADMIN, INSTRUCTOR, USER})
AUTHORING_ROLES = frozenset({ADMIN, INSTRUCTOR})

# Action name -> roles allowed unconditionally.
ACTION_ROLES: Dict[str, FrozenSet[str]] = {
    "course:create": AUTHORING_ROLES,
    "course:read": ROLES,
    "quiz:create": AUTHORING_ROLES,
    "quiz:update": AUTHORING_ROLES,
    "quiz:delete": AUTHORING_ROLES,
    "quiz:generate": AUTHORING_ROLES,
    "quiz:list": ROLES,
    "quiz:read": ROLES,
    "quiz:read_answers": AUTHORING_ROLES,
    "quiz:submit": ROLES,
    "submission:list_own": ROLES,
    "submission:list_quiz": AUTHORING_ROLES,
    "submission:read_any": AUTHORING_ROLES,
    "streak:read_own": ROLES,
}

# Actions that an owner may perform on their own resource regardless of role.
OWNER_ACTIONS = {"submission:read_any"}


@dataclass(frozen=True)
class Identity:
    user_id: str
    role: str = USER

    @property
    def is_author(self) -> bool:
        return self.role in AUTHORING_ROLES


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: str = ""


def authorize(identity: Identity, action: str, owner_id: Optional[str] = None) -> Decision:
    """Decide whether `identity` may perform `action`.

    `owner_id` is the user that owns the target resource, when the action
    targets one; owners are allowed the actions listed in OWNER_ACTIONS.
    """
    allowed_roles = ACTION_ROLES.get(action)
    if allowed_roles is None:
        return Decision(False, f"unknown action: {action}")
    if identity.role in allowed_roles:
        return Decision(True, f"role {identity.role} may {action}")
    if action in OWNER_ACTIONS and owner_id is not None and owner_id == identity.user_id:
        return Decision(True, "owner access")
    return Decision(False, f"role {identity.role} may not {action}")


# Raise ForbiddenError when the decision denies access.
def ensure_allowed(identity: Identity, action: str, owner_id: Optional[str] = None) -> None:
    decision = authorize(identity, action, owner_id)
    if not decision.allowed:
        raise ForbiddenError(decision.reason)


# Resolve the caller's identity from request headers.
def get_identity(
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
) -> Identity:
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="authentication required",
        )
    role = (x_user_role or USER).strip().upper()
    if role not in ROLES:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"unknown role: {role}",
        )
    return Identity(user_id=x_user_id.strip(), role=role)


# Dependency factory enforcing a role-level action before the handler runs.
def require(action: str) -> Callable[[Identity], Identity]:
    def wrapper(identity: Identity = Depends(get_identity)) -> Identity:
        ensure_allowed(identity, action)
        return identity

    return wrapper
