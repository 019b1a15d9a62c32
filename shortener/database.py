from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from shortener.config import Settings

Base = declarative_base()


def resolve_url(settings: Settings):
    url = make_url(settings.database_url)
    # Server databases take the logical name from settings when the URL has none
    if url.get_backend_name() != "sqlite" and not url.database:
        url = url.set(database=settings.database_name)
    return url


def make_engine(settings: Settings) -> Engine:
    url = resolve_url(settings)
    if url.get_backend_name() == "sqlite":
        kwargs = {"connect_args": {"check_same_thread": False}}  # needed for SQLite + FastAPI
        if url.database in (None, "", ":memory:"):
            # one shared connection, otherwise every session sees an empty database
            kwargs["poolclass"] = StaticPool
        return create_engine(url, **kwargs)
    connect_args = {}
    if url.get_backend_name() == "postgresql":
        connect_args["connect_timeout"] = 10
    return create_engine(
        url,
        connect_args=connect_args,
        pool_pre_ping=True,
        pool_size=10,
        max_overflow=0,
        pool_timeout=10,
        pool_recycle=1800,
    )


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(engine: Engine) -> None:
    # Imported for its side effect of registering the tables on Base
    from shortener import models  # noqa: F401

    Base.metadata.create_all(bind=engine)


def get_db(request: Request):
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()
