from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from gram_panchayat.config import settings

Base = declarative_base()


def make_engine(url: str):
    # sqlite waits on the write lock instead of failing fast when creators race
    connect_args = {"check_same_thread": False, "timeout": 30} if url.startswith("sqlite") else {}
    return create_engine(url, connect_args=connect_args)


engine = make_engine(settings.DB_URL)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


def init_db(bind=None):
    from gram_panchayat.db import models  # ensure models are imported
    models.Base.metadata.create_all(bind=bind or engine)
