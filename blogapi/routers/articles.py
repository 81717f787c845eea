from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from blogapi.database import get_db
from blogapi.dependencies import PaginationParams, article_filters, get_current_user
from blogapi.models import User
from blogapi.responses import success_response
from blogapi.schemas import ArticleCreate, ArticleFilter, ArticleUpdate
from blogapi.services import article_service, comment_service

router = APIRouter(prefix="/api/articles", tags=["articles"])

# Fixed paths are declared before /{article_id} so they are not captured by it.

@router.get("")
async def list_articles(
    pagination: PaginationParams = Depends(),
    filters: ArticleFilter = Depends(article_filters),
    db: AsyncSession = Depends(get_db),
):
    page = await article_service.get_articles(
        db, filters, pagination.page, pagination.limit, pagination.sort_by, pagination.sort_order
    )
    return success_response(data=page.model_dump(), count=len(page.items))

@router.get("/published")
async def list_published_articles(db: AsyncSession = Depends(get_db)):
    articles = await article_service.get_published_articles(db)
    return success_response(data=articles, count=len(articles))

@router.post("", status_code=201)
async def create_article(
    data: ArticleCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    article = await article_service.create_article(db, current_user.id, data)
    return success_response(data=article, message="Article created successfully")

@router.get("/{article_id}")
async def get_article(article_id: str, db: AsyncSession = Depends(get_db)):
    return success_response(data=await article_service.get_article(db, article_id))

@router.get("/{article_id}/with-comments")
async def get_article_with_comments(article_id: str, db: AsyncSession = Depends(get_db)):
    return success_response(data=await article_service.get_article_with_comments(db, article_id))

@router.get("/{article_id}/comments")
async def list_article_comments(article_id: str, db: AsyncSession = Depends(get_db)):
    comments = await comment_service.get_comments_by_article(db, article_id)
    return success_response(data=comments, count=len(comments))

@router.put("/{article_id}")
async def update_article(
    article_id: str,
    data: ArticleUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    article = await article_service.update_article(db, article_id, current_user.id, data)
    return success_response(data=article, message="Article updated successfully")

@router.patch("/{article_id}/publish")
async def toggle_publish(
    article_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    article, message = await article_service.toggle_publish(db, article_id, current_user.id)
    return success_response(data=article, message=message)

@router.delete("/{article_id}")
async def delete_article(
    article_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    snapshot = await article_service.delete_article(db, article_id, current_user.id)
    return success_response(data=snapshot, message="Article deleted successfully")
