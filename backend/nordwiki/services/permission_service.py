"""Permission checking -- single pure function.

This is the ONE place where role capabilities are defined. Deployments that
want a different model replace this mapping; everything else calls ``can``.

Design:
    - Roles: admin, moderator, editor, member
    - Actions: read, comment, propose, edit, publish, delete, review, moderate
    - Unknown roles get no capabilities
"""

from __future__ import annotations

from ..exceptions import PermissionDeniedError

_MEMBER = {"read", "comment", "propose"}
_EDITOR = _MEMBER | {"edit"}
_MODERATOR = _EDITOR | {"publish", "delete", "review", "moderate"}

# Role -> allowed actions.
_ROLE_ACTIONS: dict[str, set[str]] = {
    "admin": _MODERATOR,
    "moderator": _MODERATOR,
    "editor": _EDITOR,
    "member": _MEMBER,
}


def can(role: str, action: str) -> bool:
    """Whether *role* is allowed to perform *action*."""
    return action in _ROLE_ACTIONS.get(role, set())


def require(role: str, action: str) -> None:
    """Raise PermissionDeniedError unless *role* may perform *action*."""
    if not can(role, action):
        raise PermissionDeniedError(
            f"Role '{role}' is not allowed to {action}",
            action=action,
        )
