"""
Database configuration for the Agent Router service.

This module provides SQLAlchemy session and engine setup.
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from agent_router.config.settings import PG_DSN

# Create SQLAlchemy engine
engine = create_engine(PG_DSN, pool_pre_ping=True)

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    """
    Return a database session.
    
    This function is designed to be used as a FastAPI dependency.
    It yields a session and ensures it's closed after use.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
