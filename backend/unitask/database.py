from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from unitask.config import DATABASE_URL, DEBUG_SQL

SQLALCHEMY_DATABASE_URL = DATABASE_URL

engine_kwargs = {
    "pool_pre_ping": True,  # Verify connections before using them
    "echo": DEBUG_SQL,
}
if SQLALCHEMY_DATABASE_URL.startswith("sqlite"):
    # Local tooling and tests; no connection pool sizing for SQLite
    engine_kwargs["connect_args"] = {"check_same_thread": False}
else:
    engine_kwargs["pool_size"] = 5
    engine_kwargs["max_overflow"] = 10

engine = create_engine(SQLALCHEMY_DATABASE_URL, **engine_kwargs)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """Get database session for dependency injection."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
