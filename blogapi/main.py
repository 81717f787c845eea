import logging
from contextlib import asynccontextmanager
from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from blogapi.config import settings
from blogapi.database import engine, get_db
from blogapi.exceptions import register_exception_handlers
from blogapi.middleware import RequestTimingMiddleware
from blogapi.routers import articles, auth, comments
from blogapi.security import TokenService

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger("blogapi")

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting Blog API (env=%s)", settings.APP_ENV)
    yield
    await engine.dispose()
    logger.info("Blog API stopped")

app = FastAPI(
    title="Blog API",
    description="Blogging backend: accounts, articles and comments",
    version="1.0.0",
    lifespan=lifespan,
)

# Process-wide signing secret, injected into handlers via get_token_service.
app.state.token_service = TokenService.from_settings(settings)

register_exception_handlers(app)

# Middleware
app.add_middleware(RequestTimingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(auth.router)
app.include_router(articles.router)
app.include_router(comments.router)

@app.get("/api/health")
async def health(db: AsyncSession = Depends(get_db)):
    try:
        await db.execute(text("SELECT 1"))
        database = "connected"
    except SQLAlchemyError as exc:
        logger.warning("Health check could not reach the database: %s", exc)
        await db.rollback()
        database = "disconnected"
    return {"status": "ok", "version": "1.0.0", "database": database}
