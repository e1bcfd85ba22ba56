"""
SQLAlchemy engine, session factory and declarative base
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from hooked.core.config import settings

connect_args = {"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(settings.DATABASE_URL, connect_args=connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

def get_db():
    """Yield a database session for the duration of a request"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
