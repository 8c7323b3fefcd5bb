from typing import Literal

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, Field

from wildwatch.core.security import SESSION_MAX_AGE, create_session_cookie
from wildwatch.deps import SESSION_COOKIE_NAME, get_current_user, get_store
from wildwatch.ledger.base import LedgerStore
from wildwatch.models.user import User
from wildwatch.services import users as user_service

router = APIRouter()


class RegisterRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    username: str
    account_type: Literal["viewer", "creator"] = "viewer"
    profile_photo_url: str | None = None


def _user_out(user: User) -> dict:
    return {
        "id": user.id,
        "name": user.name,
        "username": user.username,
        "account_type": user.account_type,
        "points": user.points,
        "profile_photo_url": user.profile_photo_url,
    }


@router.post("/register", status_code=201)
async def auth_register(body: RegisterRequest, response: Response, store: LedgerStore = Depends(get_store)):
    """Create an account with a zero balance; set httpOnly session cookie."""
    user = await user_service.create_user(
        store,
        body.name,
        body.username,
        account_type=body.account_type,
        profile_photo_url=body.profile_photo_url,
    )
    session_value = create_session_cookie(user_service.session_payload_for_user(user))
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=session_value,
        max_age=SESSION_MAX_AGE,
        httponly=True,
        secure=False,  # set True in prod with HTTPS
        samesite="lax",
        path="/",
    )
    return {"success": True, "user": _user_out(user)}


@router.get("/me")
async def auth_me(user: User = Depends(get_current_user)):
    """Return current user. Requires session cookie."""
    return _user_out(user)


@router.post("/logout")
async def auth_logout(response: Response):
    response.delete_cookie(SESSION_COOKIE_NAME, path="/")
    return {"success": True}
