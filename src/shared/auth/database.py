"""Database setup and configuration."""

import logging
from datetime import datetime

from sqlalchemy import create_engine, Column, String, Boolean, DateTime
from sqlalchemy.orm import declarative_base, sessionmaker

from src.shared.config import get_settings

DATABASE_URL = get_settings().database_url

if DATABASE_URL.startswith("sqlite"):
    # SQLite-specific config (local development)
    engine_kwargs = {
        "connect_args": {"check_same_thread": False, "timeout": 10},
    }
else:
    # PostgreSQL connection pool configuration
    engine_kwargs = {
        "pool_pre_ping": True,  # Verify connections before using
        "pool_recycle": 3600,  # Recycle connections after 1 hour
        "pool_timeout": 10,
        # Bound every statement so a stuck database cannot hang a request
        "connect_args": {"connect_timeout": 10, "options": "-c statement_timeout=10000"},
    }

engine = create_engine(DATABASE_URL, **engine_kwargs)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


class User(Base):
    """Studio staff account. Admins can review inquiries and manage galleries."""
    __tablename__ = "users"

    id = Column(String, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=False)
    full_name = Column(String, nullable=False)
    is_admin = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    last_login = Column(DateTime, nullable=True)


def init_db(bind=None):
    """Initialize database tables."""
    from sqlalchemy.exc import SQLAlchemyError
    # Register inquiry tables on the shared Base before create_all
    import src.shared.inquiry.database  # noqa: F401

    try:
        # Use checkfirst=True to avoid errors if tables already exist
        Base.metadata.create_all(bind=bind or engine, checkfirst=True)
        logging.info("Database tables initialized successfully")
    except SQLAlchemyError as e:
        logging.error(f"Database initialization error: {str(e)}")
        raise


def get_db():
    """Dependency to get database session."""
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
