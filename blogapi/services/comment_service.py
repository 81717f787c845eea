"""
Comment service: comments attached to an article and owned by a user.

Editing and deleting are restricted to the comment's author through the
same ``require_owner`` policy the article service uses.  Likes are
anonymous and unlimited: ``like_comment`` records no identity and performs
no de-duplication, it only bumps the counter atomically.
"""
import logging

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from blogapi.exceptions import NotFound
from blogapi.models import Article, Comment
from blogapi.permissions import require_owner
from blogapi.schemas import CommentCreate, CommentUpdate
from blogapi.services.article_service import ARTICLE_NOT_FOUND, parse_id
from blogapi.services.user_service import user_to_dict

logger = logging.getLogger(__name__)

COMMENT_NOT_FOUND = "Comment not found"
NOT_COMMENT_AUTHOR = "Not allowed: you are not the author of this comment"


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------

def _comment_to_dict(comment: Comment, include_article: bool = False) -> dict:
    data = {
        "id": comment.id,
        "content": comment.content,
        "article_id": comment.article_id,
        "author_id": comment.author_id,
        "author": user_to_dict(comment.author) if comment.author else None,
        "like_count": comment.like_count,
        "created_at": comment.created_at.isoformat() if comment.created_at else None,
        "updated_at": comment.updated_at.isoformat() if comment.updated_at else None,
    }
    if include_article:
        # The article may have been deleted after the comment was written.
        article = comment.article
        data["article"] = (
            {"id": article.id, "title": article.title, "author_id": article.author_id}
            if article is not None
            else None
        )
    return data


# ---------------------------------------------------------------------------
# Loading helpers
# ---------------------------------------------------------------------------

async def _ensure_article_exists(db: AsyncSession, article_id) -> int:
    article_id = parse_id(article_id, ARTICLE_NOT_FOUND)
    result = await db.execute(select(Article.id).where(Article.id == article_id))
    if result.scalar_one_or_none() is None:
        raise NotFound(ARTICLE_NOT_FOUND)
    return article_id


async def _load_comment(db: AsyncSession, comment_id) -> Comment:
    q = (
        select(Comment)
        .where(Comment.id == parse_id(comment_id, COMMENT_NOT_FOUND))
        .options(joinedload(Comment.author), joinedload(Comment.article))
        .execution_options(populate_existing=True)
    )
    comment = (await db.execute(q)).unique().scalar_one_or_none()
    if comment is None:
        raise NotFound(COMMENT_NOT_FOUND)
    return comment


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def create_comment(db: AsyncSession, author_id: int, data: CommentCreate) -> dict:
    """
    Add a comment by *author_id* to ``data.article_id``.

    Raises ``NotFound`` (and writes nothing) when the article does not exist.
    """
    article_id = await _ensure_article_exists(db, data.article_id)

    comment = Comment(
        content=data.content,
        article_id=article_id,
        author_id=author_id,
        like_count=0,
    )
    db.add(comment)
    await db.flush()
    return _comment_to_dict(await _load_comment(db, comment.id), include_article=True)


async def get_comments(db: AsyncSession) -> list[dict]:
    """Return every comment, newest first, with the title of its article."""
    q = (
        select(Comment)
        .options(joinedload(Comment.author), joinedload(Comment.article))
        .order_by(Comment.created_at.desc(), Comment.id.desc())
    )
    result = await db.execute(q)
    return [_comment_to_dict(c, include_article=True) for c in result.unique().scalars().all()]


async def get_comments_by_article(db: AsyncSession, article_id) -> list[dict]:
    """Return the comments of one article, newest first."""
    article_id = await _ensure_article_exists(db, article_id)
    q = (
        select(Comment)
        .where(Comment.article_id == article_id)
        .options(joinedload(Comment.author))
        .order_by(Comment.created_at.desc(), Comment.id.desc())
    )
    result = await db.execute(q)
    return [_comment_to_dict(c) for c in result.unique().scalars().all()]


async def get_comment(db: AsyncSession, comment_id) -> dict:
    return _comment_to_dict(await _load_comment(db, comment_id), include_article=True)


async def update_comment(
    db: AsyncSession, comment_id, requester_id: int, data: CommentUpdate
) -> dict:
    comment = await _load_comment(db, comment_id)
    require_owner(comment, requester_id, message=NOT_COMMENT_AUTHOR)

    comment.content = data.content
    await db.flush()
    return _comment_to_dict(await _load_comment(db, comment.id), include_article=True)


async def delete_comment(db: AsyncSession, comment_id, requester_id: int) -> dict:
    """Hard-delete the comment and return a snapshot of it."""
    comment = await _load_comment(db, comment_id)
    require_owner(comment, requester_id, message=NOT_COMMENT_AUTHOR)

    snapshot = _comment_to_dict(comment, include_article=True)
    await db.delete(comment)
    await db.flush()
    logger.info("User %s deleted comment %s", requester_id, snapshot["id"])
    return snapshot


async def like_comment(db: AsyncSession, comment_id) -> dict:
    comment_id = parse_id(comment_id, COMMENT_NOT_FOUND)
    result = await db.execute(
        update(Comment)
        .where(Comment.id == comment_id)
        .values(like_count=Comment.like_count + 1, updated_at=Comment.updated_at)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise NotFound(COMMENT_NOT_FOUND)
    return _comment_to_dict(await _load_comment(db, comment_id), include_article=True)
