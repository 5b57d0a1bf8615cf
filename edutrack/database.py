from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from edutrack.core.config import get_settings

settings = get_settings()


def build_engine(database_url: str, sslmode: str = None):
    if database_url.startswith("sqlite"):
        return create_engine(database_url, connect_args={"check_same_thread": False})

    # Supabase requires SSL
    connect_args = {"sslmode": sslmode} if sslmode else {}
    return create_engine(database_url, connect_args=connect_args, pool_pre_ping=True)


engine = build_engine(settings.database_url, settings.database_sslmode)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
