"""Database package for the audit reporting pipeline"""

from database.base import Base
from database.session import SessionLocal, build_engine, engine

__all__ = ["Base", "SessionLocal", "build_engine", "engine"]
