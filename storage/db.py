# daycare/storage/db.py
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine, Session

from core.settings import DB_PATH

# Ensure SQLModel metadata is populated
import models  # noqa: F401
from storage import migrations


_engine = None


def make_engine(url: str | None = None):
    """Engine usable from worker threads; ``sqlite://`` gives a shared in-memory DB."""
    if url is None:
        url = f"sqlite:///{DB_PATH.as_posix()}"
    if url in ("sqlite://", "sqlite:///:memory:"):
        return create_engine(
            url,
            echo=False,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(url, echo=False, connect_args={"check_same_thread": False})


def init_db(engine=None):
    if engine is None:
        DB_PATH.parent.mkdir(parents=True, exist_ok=True)
        engine = get_engine()
    SQLModel.metadata.create_all(engine)
    migrations.run_all(engine)
    return engine


def get_engine():
    global _engine
    if _engine is None:
        _engine = make_engine()
    return _engine


def get_session() -> Session:
    return Session(get_engine())


def session_factory_for(engine):
    def factory() -> Session:
        return Session(engine)

    return factory
