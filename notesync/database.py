# -*- coding: utf-8 -*-
"""
Veritabanı bağlantı yönetimi
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from .config import settings


def _engine_kwargs(url: str) -> dict:
    # SQLite tek dosya, PostgreSQL havuzlu bağlantı
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True, "pool_size": 10, "max_overflow": 20}


engine = create_engine(settings.DATABASE_URL, **_engine_kwargs(settings.DATABASE_URL))

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """Dependency injection için veritabanı session'ı."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind=None):
    """Tüm tabloları oluştur."""
    # Modeller Base.metadata'ya kayıt olsun
    from . import models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
