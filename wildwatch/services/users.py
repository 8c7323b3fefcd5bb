import re

from wildwatch.core.audit import log_event
from wildwatch.core.config import get_settings
from wildwatch.core.exceptions import BadRequestError, ConflictError
from wildwatch.core.logging import get_logger
from wildwatch.ledger.base import LedgerStore, Transaction, server_timestamp
from wildwatch.models.user import USERNAMES, USERS, User

log = get_logger(__name__)

ACCOUNT_TYPES = ("viewer", "creator", "admin")
USERNAME_RE = re.compile(r"^[a-z0-9_.]{3,30}$")


def normalize_username(username: str) -> str:
    return (username or "").strip().lower()


async def create_user(
    store: LedgerStore,
    name: str,
    username: str,
    account_type: str = "viewer",
    profile_photo_url: str | None = None,
) -> User:
    """
    Reserve the username and create the user with a zero balance, atomically.
    Usernames listed in ADMIN_USERNAMES are registered as admin accounts.
    """
    username = normalize_username(username)
    if not USERNAME_RE.match(username):
        raise BadRequestError("Username must be 3-30 characters: letters, digits, '_' or '.'")
    if account_type not in ACCOUNT_TYPES:
        raise BadRequestError(f"Invalid account type: {account_type}")
    if username in get_settings().admin_usernames:
        account_type = "admin"
    user_ref = store.ref(USERS)
    username_ref = store.ref(USERNAMES, username)

    async def _work(tx: Transaction) -> None:
        taken = await tx.get(username_ref)
        if taken.exists:
            raise ConflictError("Username already taken", details={"username": username})
        await tx.set(username_ref, {"user_id": user_ref.id, "created_at": server_timestamp()})
        await tx.set(
            user_ref,
            {
                "name": name.strip(),
                "username": username,
                "account_type": account_type,
                "points": 0,
                "profile_photo_url": profile_photo_url,
                "created_at": server_timestamp(),
                "updated_at": server_timestamp(),
            },
        )

    await store.run_transaction(_work)
    log.info("user_created", user_id=user_ref.id, username=username)
    await log_event(store, user_ref.id, "user_created", "user", user_ref.id, {"username": username})
    return User.from_snapshot(await store.get(user_ref))


async def get_user(store: LedgerStore, user_id: str) -> User | None:
    if not user_id:
        return None
    snap = await store.get(store.ref(USERS, user_id))
    return User.from_snapshot(snap) if snap.exists else None


def session_payload_for_user(user: User) -> dict:
    return {"user_id": user.id}
