from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from .config import get_settings

settings = get_settings()
database_url = str(settings.DATABASE_URL)

# SQLite (local runs, tests) needs cross-thread access for sync routes
connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}

engine = create_engine(database_url, pool_pre_ping=True, connect_args=connect_args)

# Services commit step by step (persist, attach run id, advance cursor) and
# keep using the same instances afterwards, so commits must not expire them.
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)
Base = declarative_base()


def get_db():
    """Request-scoped session. Callers commit explicitly; nothing here does."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
