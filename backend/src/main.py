import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from auth.interfaces.routes import router as auth_router
from collaboration.interfaces.routes import router as collaboration_router
from notes.interfaces.routes import router as notes_router
from presence.interfaces.routes import router as presence_router
from realtime.interfaces.routes import router as realtime_router
from shared.exceptions import (
    AppError,
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    NotFoundError,
    SessionClosedError,
)
from shared.infrastructure.database import engine
from shared.infrastructure.redis import get_redis_pool
from shared.logging import configure_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    logger.info("Starting collaborative notes API")
    yield
    await engine.dispose()
    redis = get_redis_pool()
    await redis.aclose()


app = FastAPI(
    title="Collaborative Notes",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_router)
app.include_router(notes_router)
app.include_router(collaboration_router)
app.include_router(presence_router)
app.include_router(realtime_router)


@app.exception_handler(NotFoundError)
async def not_found_handler(request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": exc.message})


@app.exception_handler(SessionClosedError)
async def session_closed_handler(request, exc: SessionClosedError):
    return JSONResponse(status_code=409, content={"detail": exc.message})


@app.exception_handler(ConflictError)
async def conflict_handler(request, exc: ConflictError):
    return JSONResponse(status_code=409, content={"detail": exc.message})


@app.exception_handler(AuthenticationError)
async def auth_error_handler(request, exc: AuthenticationError):
    return JSONResponse(status_code=401, content={"detail": exc.message})


@app.exception_handler(AuthorizationError)
async def authorization_error_handler(request, exc: AuthorizationError):
    return JSONResponse(status_code=403, content={"detail": exc.message})


@app.exception_handler(AppError)
async def app_error_handler(request, exc: AppError):
    logger.error("Unhandled application error: %s", exc.message)
    return JSONResponse(status_code=500, content={"detail": exc.message})


@app.get("/health")
async def health_check():
    return {"status": "ok"}
