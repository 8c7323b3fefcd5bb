from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from wildwatch.core.exceptions import ForbiddenError, NotFoundError
from wildwatch.deps import get_current_user, get_store
from wildwatch.ledger.base import LedgerStore
from wildwatch.models.post import Post, PostType
from wildwatch.models.user import User
from wildwatch.services import posts as posts_service
from wildwatch.services import social as social_service

router = APIRouter()


class PostCreate(BaseModel):
    type: PostType = "blog"
    title: str = Field(default="", max_length=300)
    blog_content: str = ""
    photo_url: str = ""
    audio_url: str = ""


class PostUpdate(BaseModel):
    title: str | None = Field(default=None, max_length=300)
    blog_content: str | None = None
    photo_url: str | None = None
    audio_url: str | None = None


class CommentCreate(BaseModel):
    text: str = Field(min_length=1, max_length=2000)


async def _load_post(store: LedgerStore, post_id: str) -> Post:
    post = await posts_service.get_post(store, post_id)
    if not post:
        raise NotFoundError("Post not found")
    return post


@router.post("", status_code=201)
async def post_create(
    body: PostCreate,
    user: User = Depends(get_current_user),
    store: LedgerStore = Depends(get_store),
):
    """Publish a post; the creator earns the publish bonus."""
    payload = body.model_dump()
    payload["creator_username"] = user.username
    post = await posts_service.create_post(store, user.id, payload)
    return {"success": True, "post": post.model_dump()}


@router.get("/latest")
async def posts_latest(store: LedgerStore = Depends(get_store), count: int = Query(3, ge=1, le=50)):
    posts = await posts_service.list_latest_posts(store, count)
    return {"posts": [p.model_dump() for p in posts]}


@router.get("/creator/{creator_id}")
async def posts_by_creator(creator_id: str, store: LedgerStore = Depends(get_store)):
    posts = await posts_service.list_creator_posts(store, creator_id)
    return {"posts": [p.model_dump() for p in posts]}


@router.get("/{post_id}")
async def post_get(post_id: str, store: LedgerStore = Depends(get_store)):
    post = await _load_post(store, post_id)
    return post.model_dump()


@router.patch("/{post_id}")
async def post_update(
    post_id: str,
    body: PostUpdate,
    user: User = Depends(get_current_user),
    store: LedgerStore = Depends(get_store),
):
    """Edit title, content or media urls (creator only)."""
    post = await _load_post(store, post_id)
    if post.creator_id != user.id:
        raise ForbiddenError("Only the creator can edit this post")
    updated = await posts_service.update_post(store, post_id, body.model_dump(exclude_none=True))
    return {"success": True, "post": updated.model_dump()}


@router.delete("/{post_id}")
async def post_delete(
    post_id: str,
    user: User = Depends(get_current_user),
    store: LedgerStore = Depends(get_store),
):
    """Delete a post (creator or admin); reverses every point it earned."""
    exists, creator_id = await posts_service.get_post_owner(store, post_id)
    if exists and creator_id != user.id and not user.is_admin:
        raise ForbiddenError("Only the creator can delete this post")
    deleted = await posts_service.delete_post(store, post_id)
    return {"success": True, "deleted": deleted}


@router.post("/{post_id}/like")
async def post_toggle_like(
    post_id: str,
    user: User = Depends(get_current_user),
    store: LedgerStore = Depends(get_store),
):
    liked = await social_service.toggle_like(store, post_id, user.id)
    return {"success": True, "liked": liked}


@router.get("/{post_id}/like")
async def post_like_status(
    post_id: str,
    user: User = Depends(get_current_user),
    store: LedgerStore = Depends(get_store),
):
    return {"liked": await social_service.get_like_status(store, post_id, user.id)}


@router.post("/{post_id}/share")
async def post_share(post_id: str, store: LedgerStore = Depends(get_store)):
    """Record a share; unknown posts are ignored."""
    shared = await social_service.record_share(store, post_id)
    return {"success": True, "shared": shared}


@router.get("/{post_id}/comments")
async def post_comments(post_id: str, store: LedgerStore = Depends(get_store)):
    comments = await social_service.list_comments(store, post_id)
    return {"comments": [c.model_dump() for c in comments]}


@router.post("/{post_id}/comments", status_code=201)
async def post_comment_add(
    post_id: str,
    body: CommentCreate,
    user: User = Depends(get_current_user),
    store: LedgerStore = Depends(get_store),
):
    comment = await social_service.add_comment(store, post_id, user.id, user.username, body.text)
    return {"success": True, "comment": comment.model_dump()}


@router.delete("/{post_id}/comments/{comment_id}")
async def post_comment_delete(
    post_id: str,
    comment_id: str,
    user: User = Depends(get_current_user),
    store: LedgerStore = Depends(get_store),
):
    """Delete a comment (its author, the post's creator, or an admin)."""
    comment = await social_service.get_comment(store, comment_id)
    if comment and comment.user_id != user.id and not user.is_admin:
        post = await posts_service.get_post(store, post_id)
        if not post or post.creator_id != user.id:
            raise ForbiddenError("Not allowed to delete this comment")
    deleted = await social_service.delete_comment(store, post_id, comment_id)
    return {"success": True, "deleted": deleted}
