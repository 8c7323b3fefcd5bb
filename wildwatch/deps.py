"""Shared FastAPI dependencies."""

from fastapi import Depends, Request

from wildwatch.core.exceptions import ForbiddenError, UnauthorizedError
from wildwatch.core.security import load_session_cookie
from wildwatch.ledger.base import LedgerStore, get_ledger_store
from wildwatch.models.user import User
from wildwatch.services import users as user_service

SESSION_COOKIE_NAME = "wildwatch_session"


def get_store() -> LedgerStore:
    """Dependency: the configured ledger store (overridden in tests)."""
    return get_ledger_store()


async def get_current_user(request: Request, store: LedgerStore = Depends(get_store)) -> User:
    """Dependency: load session from cookie and return User."""
    cookie = request.cookies.get(SESSION_COOKIE_NAME)
    if not cookie:
        raise UnauthorizedError("Not authenticated")
    payload = load_session_cookie(cookie)
    if not payload:
        raise UnauthorizedError("Invalid or expired session")
    user_id = payload.get("user_id")
    if not user_id:
        raise UnauthorizedError("Invalid session")
    user = await user_service.get_user(store, user_id)
    if not user:
        raise UnauthorizedError("User not found")
    return user


async def require_admin(user: User = Depends(get_current_user)) -> User:
    """Dependency: require current user to have account type admin."""
    if not user.is_admin:
        raise ForbiddenError("Admin only")
    return user
