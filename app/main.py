import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from sqlalchemy.exc import SQLAlchemyError

from app.cache import cache
from app.config import settings
from app.database import build_engine, build_session_factory, init_models
from app.errors import KnowHiveError, StoreFailure
from app.mailer import build_mailer
from app.middleware import RequestAccounting
from app.routers import articles, auth, comments, contributors, metrics, newsletter
from app.security import build_token_service

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # The engine is opened once and lives as long as the process.
    engine = build_engine()
    await init_models(engine)
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)

    try:
        await cache.connect()
    except Exception as exc:
        logger.warning("Cache unavailable, serving articles from the store: %s", exc)

    logger.info("KnowHive running (%s)", settings.APP_ENV)
    yield
    await cache.disconnect()
    logger.info("KnowHive shutting down")


app = FastAPI(
    title="KnowHive API",
    description="Articles, comments, contributor rankings and trending tags",
    version=settings.VERSION,
    lifespan=lifespan,
)
app.state.token_service = build_token_service()
app.state.mailer = build_mailer()

# Middleware
app.add_middleware(RequestAccounting)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Error mapping
@app.exception_handler(KnowHiveError)
async def knowhive_error_handler(request: Request, exc: KnowHiveError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message},
        headers=exc.headers,
    )


@app.exception_handler(SQLAlchemyError)
async def store_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error(
        "Store operation failed on %s %s",
        request.method,
        request.url.path,
        exc_info=exc,
    )
    failure = StoreFailure()
    return JSONResponse(status_code=failure.status_code, content={"detail": failure.message})


# Routers
app.include_router(articles.router)
app.include_router(contributors.router)
app.include_router(comments.router)
app.include_router(auth.router)
app.include_router(newsletter.router)
app.include_router(metrics.router)


@app.get("/", response_class=PlainTextResponse)
async def root():
    return "KnowHive is Running...."


@app.get("/health")
async def health():
    return {"status": "healthy", "version": settings.VERSION}
