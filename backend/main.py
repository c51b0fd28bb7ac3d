# backend/main.py
import logging
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from config import Settings, validate_runtime_config
from database import build_engine, build_session_factory, init_db
from utils.errors import BadRequestError, ConflictError, DomainError, ForbiddenError, NotFoundError

# Routers
from routes.auth import router as auth_router
from routes.books import router as books_router
from routes.feedback import router as feedback_router
from routes.users import router as users_router
from routes.logs import router as logs_router

logger = logging.getLogger(__name__)

# Domain error kind -> HTTP status
ERROR_STATUS = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ConflictError: status.HTTP_409_CONFLICT,
    ForbiddenError: status.HTTP_403_FORBIDDEN,
    BadRequestError: status.HTTP_400_BAD_REQUEST,
}


def status_for(error: DomainError) -> int:
    for kind, code in ERROR_STATUS.items():
        if isinstance(error, kind):
            return code
    return status.HTTP_400_BAD_REQUEST


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    load_dotenv()
    settings = settings or Settings()
    validate_runtime_config(settings)
    logging.basicConfig(level=settings.LOG_LEVEL.upper())

    app = FastAPI(title="Book Portal API", version="1.0.0",
                  description="API for managing books, users, and feedback")

    # One store handle per process, handed to requests through app.state
    engine = build_engine(settings.database_url)
    session_factory = build_session_factory(engine)
    init_db(engine, session_factory)
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = session_factory

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH"],
        allow_headers=["Content-Type", "Authorization"],
    )

    @app.exception_handler(DomainError)
    def _domain_error(request: Request, exc: DomainError):
        code = status_for(exc)
        if code == status.HTTP_403_FORBIDDEN:
            logger.warning("Forbidden %s %s: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=code, content={"detail": exc.message})

    # Filters built inside dependencies (e.g. isApproved=maybe)
    @app.exception_handler(ValidationError)
    def _validation_error(request: Request, exc: ValidationError):
        return JSONResponse(
            status_code=422,
            content={"detail": jsonable_encoder(exc.errors(include_url=False, include_context=False))},
        )

    # Register routers
    app.include_router(auth_router)
    app.include_router(books_router)
    app.include_router(feedback_router)
    app.include_router(users_router)
    app.include_router(logs_router)

    @app.get("/")
    def read_root():
        return {"message": "Book Portal API is running"}

    logger.info("create_app() complete; app ready to serve")
    return app
