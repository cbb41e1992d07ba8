# backend/database.py
import uuid

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

Base = declarative_base()


# Opaque primary keys shared by every table
def new_id() -> str:
    return str(uuid.uuid4())


def normalize_database_url(url: str) -> str:
    # Azure/Heroku style URLs use postgres://, SQLAlchemy requires postgresql://
    if url and url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql://", 1)
    return url


def build_engine(database_url: str) -> Engine:
    url = normalize_database_url(database_url)

    if "sqlite" in url:
        # SQLite only: sessions are used from the threadpool, and writers wait for each other
        connect_args = {"check_same_thread": False, "timeout": 30}
    else:
        connect_args = {}

    return create_engine(url, connect_args=connect_args, pool_pre_ping=True)


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(engine: Engine):
    # Make sure every model is registered on Base.metadata before creating tables
    import models.users  # noqa: F401
    import models.product  # noqa: F401
    import models.order  # noqa: F401
    import models.favorite  # noqa: F401
    import models.log  # noqa: F401

    Base.metadata.create_all(bind=engine)


# One session per request, taken from the factory built in create_app()
def get_db(request: Request):
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()
