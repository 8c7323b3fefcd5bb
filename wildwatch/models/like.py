LIKES = "likes"


def like_id(post_id: str, user_id: str) -> str:
    """One like per viewer per post."""
    return f"{post_id}_{user_id}"
