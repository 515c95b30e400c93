# Overview: Admin-only user management (create, list, change permissions, delete).

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import SessionToken, StockTransaction, User
from ..permissions import MANAGE_USERS
from ..validation import ConflictError, NotFoundError, ValidationError
from . import auth_service
from .concurrency import run_with_retry
from .permission_service import require_permission
from .session_service import SessionContext, is_admin_email


def list_users(ctx: SessionContext) -> list[dict]:
    require_permission(ctx, MANAGE_USERS)
    users = db.session.query(User).order_by(User.created_at.desc(), User.id.desc()).all()
    return [u.to_dict() for u in users]


def create_user(ctx: SessionContext, *, email: str, password: str, permissions: dict | None) -> dict:
    require_permission(ctx, MANAGE_USERS)

    user = run_with_retry(lambda: auth_service.create_user(email, password, permissions))
    current_app.logger.info("User created: id=%s email=%s by user_id=%s", user.id, user.email, ctx.user_id)
    return user.to_dict()


def _get_user(user_id: int) -> User:
    user = db.session.query(User).filter_by(id=user_id).first()
    if not user:
        raise NotFoundError("User not found")
    return user


def update_permissions(ctx: SessionContext, user_id: int, permissions: dict) -> dict:
    require_permission(ctx, MANAGE_USERS)
    if permissions is None:
        raise ValidationError("permissions is required")
    flags = auth_service.normalize_permissions(permissions)

    def _op():
        user = _get_user(user_id)
        for name, value in flags.items():
            setattr(user, name, value)
        db.session.commit()
        return user

    user = run_with_retry(_op)
    current_app.logger.info("Permissions updated: user_id=%s by user_id=%s", user.id, ctx.user_id)
    return user.to_dict()


def delete_user(ctx: SessionContext, user_id: int) -> None:
    """
    Delete a user account. Their sessions are removed; ledger
    rows they recorded keep their history with created_by_user_id cleared.
    """
    require_permission(ctx, MANAGE_USERS)

    user = _get_user(user_id)
    if user.id == ctx.user_id or is_admin_email(user.email):
        raise ConflictError("The admin account cannot be deleted")

    def _op():
        db.session.query(SessionToken).filter_by(user_id=user.id).delete()
        db.session.query(StockTransaction).filter_by(created_by_user_id=user.id).update(
            {StockTransaction.created_by_user_id: None}
        )
        db.session.delete(user)
        db.session.commit()

    run_with_retry(_op)
    current_app.logger.info("User deleted: id=%s by user_id=%s", user_id, ctx.user_id)
