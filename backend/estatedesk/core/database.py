"""
Engine, session factory and the declarative base
"""
from typing import Any, Dict, Generator
import logging

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from estatedesk.core.config import settings

logger = logging.getLogger(__name__)


def make_engine(url: str, **options: Any) -> Engine:
    connect_args: Dict[str, Any] = {}
    if url.startswith("sqlite"):
        # sessions are handed across FastAPI's worker threads
        connect_args["check_same_thread"] = False
    return create_engine(url, connect_args=connect_args, echo=settings.DEBUG, **options)


engine = make_engine(settings.database_url)
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
Base = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """Request-scoped session; anything the route did not commit is discarded on close"""
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def init_db(bind: Engine = None):
    import estatedesk.models  # noqa: F401  registers the tables on Base.metadata

    target = bind or engine
    Base.metadata.create_all(bind=target)
    logger.info(f"Schema ready on {target.url.render_as_string(hide_password=True)}")
