# backend/database.py
import logging
from datetime import datetime, timezone

from fastapi import Request
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

Base = declarative_base()


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# Reference data: a role id never changes once seeded
DEFAULT_ROLES = (
    ("user", "USER", "Regular user with basic permissions"),
    ("admin", "ADMIN", "Administrator with full permissions"),
)


def build_engine(url: str) -> Engine:
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        # In-memory databases live as long as their single connection
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        engine = create_engine(url, **kwargs)

        @event.listens_for(engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine

    return create_engine(url, pool_pre_ping=True)


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def get_db(request: Request):
    db: Session = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()


def seed_roles(db: Session) -> None:
    from models.role import Role

    for role_id, name, description in DEFAULT_ROLES:
        if db.get(Role, role_id) is None:
            db.add(Role(id=role_id, name=name, description=description))
    db.commit()


def init_db(engine: Engine, session_factory: sessionmaker) -> None:
    # Import models so Base.metadata knows every table
    import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    db = session_factory()
    try:
        seed_roles(db)
    finally:
        db.close()
    logger.info("Database initialised (%s)", engine.url.render_as_string(hide_password=True))
