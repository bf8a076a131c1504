"""Database session management"""
import os

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Get database URL from environment
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./audit_reports.db")


def build_engine(database_url: str = DATABASE_URL):
    """Create an engine with dialect-appropriate pooling"""
    echo = os.getenv("SQL_ECHO", "false").lower() == "true"
    if database_url.startswith("sqlite"):
        # SQLite specific settings for testing
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=echo,
        )
    # SQL Server / PostgreSQL settings for production
    return create_engine(database_url, pool_size=10, max_overflow=20, echo=echo)


engine = build_engine()

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

