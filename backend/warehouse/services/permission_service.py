# Overview: Permission gate; decides whether an actor may perform an action.

"""
Permission Checking

DESIGN PRINCIPLES:
- Fail closed: deny unless the admin identity or an explicit flag grants it
- Admin-only actions (no flag) are denied to every other actor
- A denial has no side effects beyond a log line
"""

from flask import current_app

from ..permissions import get_action_flag
from ..validation import AuthorizationError
from .session_service import SessionContext


def can_mutate(ctx: SessionContext | None, action: str) -> bool:
    """
    True iff the actor may perform action.

    Unknown action codes raise KeyError (programming error, not a denial).
    """
    flag = get_action_flag(action)
    if ctx is None or ctx.user is None:
        return False
    if ctx.is_admin:
        return True
    if not ctx.user.is_active:
        return False
    if flag is None:
        return False
    return bool(getattr(ctx.user, flag, False))


def require_permission(ctx: SessionContext | None, action: str, resource: str | None = None) -> None:
    """
    Raise AuthorizationError unless can_mutate(ctx, action).

    Usage:
        require_permission(ctx, RECORD_TRANSACTION, resource="/api/transactions")
    """
    if can_mutate(ctx, action):
        return

    user_id = ctx.user.id if ctx is not None and ctx.user is not None else None
    current_app.logger.warning(
        "Permission denied: user_id=%s action=%s resource=%s", user_id, action, resource
    )
    raise AuthorizationError(f"Permission denied: {action}")


def effective_permissions(ctx: SessionContext) -> dict:
    """Flags as the actor experiences them (all true for the admin)."""
    flags = ctx.user.permissions_dict()
    if ctx.is_admin:
        return {name: True for name in flags}
    return flags
