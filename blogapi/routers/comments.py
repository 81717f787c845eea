from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from blogapi.database import get_db
from blogapi.dependencies import get_current_user
from blogapi.models import User
from blogapi.responses import success_response
from blogapi.schemas import CommentCreate, CommentUpdate
from blogapi.services import comment_service

router = APIRouter(prefix="/api/comments", tags=["comments"])

@router.get("")
async def list_comments(db: AsyncSession = Depends(get_db)):
    comments = await comment_service.get_comments(db)
    return success_response(data=comments, count=len(comments))

@router.post("", status_code=201)
async def create_comment(
    data: CommentCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    comment = await comment_service.create_comment(db, current_user.id, data)
    return success_response(data=comment, message="Comment created successfully")

@router.get("/{comment_id}")
async def get_comment(comment_id: str, db: AsyncSession = Depends(get_db)):
    return success_response(data=await comment_service.get_comment(db, comment_id))

@router.put("/{comment_id}")
async def update_comment(
    comment_id: str,
    data: CommentUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    comment = await comment_service.update_comment(db, comment_id, current_user.id, data)
    return success_response(data=comment, message="Comment updated successfully")

@router.delete("/{comment_id}")
async def delete_comment(
    comment_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    snapshot = await comment_service.delete_comment(db, comment_id, current_user.id)
    return success_response(data=snapshot, message="Comment deleted successfully")

# Anonymous and unlimited: no identity is required or recorded.
@router.patch("/{comment_id}/like")
async def like_comment(comment_id: str, db: AsyncSession = Depends(get_db)):
    comment = await comment_service.like_comment(db, comment_id)
    return success_response(data=comment, message="Comment liked")
