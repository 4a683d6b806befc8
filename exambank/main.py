"""
Main FastAPI application entry point.
"""
import logging
from contextlib import asynccontextmanager

import sentry_sdk
from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration
from starlette.exceptions import HTTPException as StarletteHTTPException

from exambank.api.analytics import router as analytics_router
from exambank.api.auth import router as auth_router
from exambank.api.categories import router as categories_router
from exambank.api.contributors import router as contributors_router
from exambank.api.exam_groups import router as exam_groups_router
from exambank.api.exams import router as exams_router
from exambank.api.pools import router as pools_router
from exambank.api.questions import router as questions_router
from exambank.api.testtakers import router as testtakers_router
from exambank.core.config import settings
from exambank.core.database import init_db
from exambank.core.errors import ExamBankError

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Initialize Sentry if configured
if settings.SENTRY_DSN:
    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.ENVIRONMENT,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
        ],
        traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {settings.APP_NAME} ({settings.ENVIRONMENT})...")
    init_db()
    logger.info("Database initialized")
    yield
    logger.info("Shutdown complete")


app = FastAPI(
    title=settings.APP_NAME,
    description=settings.APP_DESCRIPTION,
    version=settings.APP_VERSION,
    docs_url=None if settings.is_production() else "/docs",
    redoc_url=None if settings.is_production() else "/redoc",
    lifespan=lifespan,
)
app.add_middleware(CORSMiddleware, allow_origins=settings.CORS_ORIGINS, allow_credentials=True,
                   allow_methods=["*"], allow_headers=["*"])
app.add_middleware(GZipMiddleware, minimum_size=1000)

if settings.PROMETHEUS_ENABLED:
    Instrumentator().instrument(app).expose(app, endpoint="/metrics", include_in_schema=False)


@app.exception_handler(ExamBankError)
async def exam_bank_exception_handler(request: Request, exc: ExamBankError):
    if exc.status_code >= 500:
        logger.error(f"{exc.code} on {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.to_dict()})


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": {"code": "HTTP_ERROR", "message": exc.detail, "details": {}, "status_code": exc.status_code}},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=422,
        content={"error": {"code": "VALIDATION_ERROR", "message": "Validation error",
                           "details": {"errors": jsonable_encoder(exc.errors())}, "status_code": 422}},
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    message = "An internal error occurred" if settings.is_production() else str(exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": {"code": "INTERNAL_ERROR", "message": message, "details": {}, "status_code": 500}},
    )


prefix = settings.API_V1_PREFIX
app.include_router(auth_router, prefix=f"{prefix}/auth", tags=["auth"])
app.include_router(pools_router, prefix=f"{prefix}/pools", tags=["pools"])
app.include_router(exam_groups_router, prefix=f"{prefix}/exam-groups", tags=["exam-groups"])
app.include_router(categories_router, prefix=f"{prefix}/categories", tags=["categories"])
app.include_router(contributors_router, prefix=f"{prefix}/contributors", tags=["contributors"])
app.include_router(questions_router, prefix=f"{prefix}/questions", tags=["questions"])
app.include_router(testtakers_router, prefix=f"{prefix}/testtakers", tags=["testtakers"])
app.include_router(exams_router, prefix=f"{prefix}/exams", tags=["exams"])
app.include_router(analytics_router, prefix=f"{prefix}/analytics", tags=["analytics"])


@app.get("/health", tags=["Health"])
def health():
    return {"status": "ok", "version": settings.APP_VERSION, "environment": settings.ENVIRONMENT}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("exambank.main:app", host="0.0.0.0", port=8000, log_level=settings.LOG_LEVEL.lower())
