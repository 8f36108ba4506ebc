from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from classplanner.api.routes import ai_schedules, health
from classplanner.core.config import get_settings
from classplanner.core.exceptions import AppError
from classplanner.core.logging import setup_logging
from classplanner.db.bootstrap import ensure_runtime_schema

settings = get_settings()


@asynccontextmanager
async def lifespan(_: FastAPI):
    setup_logging(environment=settings.environment, level=settings.log_level)
    ensure_runtime_schema()
    yield


async def app_error_handler(request: Request, exc: AppError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.message, "details": exc.details},
    )


app = FastAPI(title=settings.project_name, lifespan=lifespan)
app.add_exception_handler(AppError, app_error_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router, prefix=settings.api_prefix, tags=["health"])
app.include_router(ai_schedules.router, prefix=f"{settings.api_prefix}/ai-schedules", tags=["ai-schedules"])
