import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from cms.cache import cache
from cms.config import settings
from cms.exceptions import CMSError, InvalidTokenError
from cms.middleware import RequestLogMiddleware
from cms.routers import articles, auth, users

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

VERSION = "1.0.0"

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup; the API keeps serving from the database if Redis is down
    await cache.connect()
    yield
    # Shutdown
    await cache.disconnect()

app = FastAPI(
    title="CMS API",
    description="Users and articles behind JWT auth, with a Redis read-through cache",
    version=VERSION,
    lifespan=lifespan,
)

@app.exception_handler(CMSError)
async def cms_error_handler(_request: Request, exc: CMSError) -> JSONResponse:
    """Render service-layer errors as ``{"detail": ...}`` with their status code."""
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, InvalidTokenError) else None
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message},
        headers=headers,
    )

# Middleware
app.add_middleware(RequestLogMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(auth.router)
app.include_router(articles.router)
app.include_router(users.router)

@app.get("/health")
async def health():
    return {"status": "healthy", "version": VERSION}
