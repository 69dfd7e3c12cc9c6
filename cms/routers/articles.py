from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from cms.database import get_db
from cms.dependencies import article_filters, get_current_user_id
from cms.schemas import ArticleCreate, ArticleFilters, ArticlePage, ArticleResponse, ArticleUpdate
from cms.services import article_service

router = APIRouter(prefix="/api/v1/articles", tags=["articles"])

@router.get("", response_model=ArticlePage)
async def list_articles(
    filters: ArticleFilters = Depends(article_filters),
    db: AsyncSession = Depends(get_db),
):
    return await article_service.find_all(db, filters)

@router.get("/{article_id}", response_model=ArticleResponse)
async def get_article(article_id: str, db: AsyncSession = Depends(get_db)):
    return await article_service.find_one(db, article_id)

@router.post("", status_code=201, response_model=ArticleResponse)
async def create_article(
    data: ArticleCreate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await article_service.create_article(db, data, user_id)

@router.patch("/{article_id}", response_model=ArticleResponse)
async def update_article(
    article_id: str,
    data: ArticleUpdate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await article_service.update_article(db, article_id, data, user_id)

@router.delete("/{article_id}", status_code=204)
async def delete_article(
    article_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    await article_service.remove_article(db, article_id, user_id)
