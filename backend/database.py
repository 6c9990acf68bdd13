from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

Base = declarative_base()


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        options = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection, otherwise every session sees an empty database
            options["poolclass"] = StaticPool
        return options
    return {"pool_pre_ping": True, "pool_recycle": 300}


class Database:
    """
    Owns the engine (and with it the connection pool) plus the session factory.

    Built once at application startup and disposed at shutdown; request
    handlers receive sessions through `get_db`, never through a module global.
    """

    def __init__(self, url: str, echo: bool = False):
        self.engine = create_engine(url, echo=echo, **_engine_options(url))
        self.SessionLocal = sessionmaker(
            autocommit=False, autoflush=False, expire_on_commit=False, bind=self.engine
        )

    def create_all(self) -> None:
        """Create all tables if they don't exist."""
        # models must be imported so their tables are registered on Base.metadata
        import models  # noqa: F401

        Base.metadata.create_all(bind=self.engine)

    def session(self):
        return self.SessionLocal()

    def dispose(self) -> None:
        self.engine.dispose()


def get_db(request: Request):
    """Dependency that provides a DB session and ensures it's closed after use."""
    db = request.app.state.db.session()
    try:
        yield db
    finally:
        db.close()
