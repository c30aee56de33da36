"""
Point d'entrée principal de l'API Devoirs (préscolaire).
Démarrage : uvicorn app.main:app --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

import app.models  # noqa: F401 (enregistre tous les modèles dans Base.metadata avant les routers)
from app.config import settings
from app.database import Database
from app.errors import DomainError, ErrorCode
from app.routers import admin, homework, notifications
from app.schemas.common import ErrorResponse
from app.scheduler import start_scheduler, stop_scheduler

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Cycle de vie de l'application : construit le pool de connexions, démarre le
    consommateur d'outbox, puis libère le tout à l'arrêt.
    """
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    database = Database(
        settings.DATABASE_URL,
        pool_size=settings.DB_POOL_SIZE,
        pool_recycle=settings.DB_POOL_RECYCLE_SECONDS,
    )
    app.state.database = database
    if settings.DB_CREATE_TABLES:
        database.create_tables()
    if settings.OUTBOX_ENABLED:
        start_scheduler(database)
    logger.info("API démarrée (env=%s)", settings.ENV)
    yield
    stop_scheduler()
    database.dispose()


app = FastAPI(
    title="Homework API",
    description="API des devoirs préscolaires : publication, visibilité par enfant, rendus et notifications",
    version="0.1.0",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
    lifespan=lifespan,
)

# allow_origin_regex est nécessaire pour les requêtes preflight POST avec Content-Type JSON.
app.add_middleware(
    CORSMiddleware,
    allow_origins=[],
    allow_origin_regex=settings.CORS_ORIGIN_REGEX,
    allow_credentials=False,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["Content-Type", "Authorization", "Accept"],
)


app.include_router(homework.router)
app.include_router(notifications.router)
app.include_router(admin.router)


def _error_body(code: str, message: str, errors=None) -> dict:
    return ErrorResponse(code=code, message=message, errors=errors).model_dump(exclude_none=True)


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    """Erreur métier attendue : statut et code portés par l'exception."""
    if exc.status_code >= 403:
        logger.info("%s %s → %d %s", request.method, request.url.path, exc.status_code, exc.code.value)
    return JSONResponse(status_code=exc.status_code, content=_error_body(exc.code.value, exc.message))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content=_error_body(
            ErrorCode.VALIDATION_ERROR.value,
            "Données de requête invalides.",
            errors=jsonable_encoder(exc.errors()),
        ),
    )


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error("Erreur BDD sur %s %s : %s", request.method, request.url.path, exc, exc_info=True)
    return JSONResponse(
        status_code=500,
        content=_error_body(ErrorCode.INTERNAL_ERROR.value, "Erreur de base de données."),
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Intercepte toutes les exceptions non gérées pour garantir que la réponse 500
    passe bien par CORSMiddleware (qui injecte les headers CORS).
    """
    logger.error("Exception non gérée : %s", exc, exc_info=True)
    return JSONResponse(
        status_code=500,
        content=_error_body(ErrorCode.INTERNAL_ERROR.value, "Une erreur interne est survenue."),
    )


@app.get("/api/health", tags=["Santé"])
def health_check():
    """Vérifie que l'API est opérationnelle."""
    return {"status": "ok", "service": "Homework API", "version": "0.1.0"}
