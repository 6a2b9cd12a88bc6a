from sqlalchemy import create_engine
from sqlalchemy.ext.declarative import declarative_base
from sqlalchemy.orm import sessionmaker
import os
import logging
from dotenv import load_dotenv
load_dotenv()

logger = logging.getLogger(__name__)

# Any SQLAlchemy URL works; sqlite is the local default
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./cardmatch.db")

if DATABASE_URL.startswith("sqlite"):
    # FastAPI serves sync dependencies from a threadpool
    engine = create_engine(
        DATABASE_URL,
        connect_args={"check_same_thread": False}
    )
else:
    engine = create_engine(
        DATABASE_URL,
        pool_size=12,
        max_overflow=20,
        pool_timeout=30,
        pool_recycle=1000
    )
logger.info(f"Database engine configured for {engine.url.get_backend_name()}")

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """Dependency for getting database session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
