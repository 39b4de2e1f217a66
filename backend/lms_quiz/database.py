# SQLAlchemy engine/session setup and DB dependency.
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from lms_quiz.config import get_database_url

DATABASE_URL = get_database_url()


# SQLite needs cross-thread access for the test client; in-memory databases share one connection.
def _engine_options(url: str) -> dict:
    if not url.startswith("sqlite"):
        return {}
    options = {"connect_args": {"check_same_thread": False}}
    if url in ("sqlite://", "sqlite:///:memory:") or "mode=memory" in url:
        options["poolclass"] = StaticPool
    return options


engine = create_engine(DATABASE_URL, future=True, **_engine_options(DATABASE_URL))
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

# Provide a SQLAlchemy session for request-scoped usage.
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
