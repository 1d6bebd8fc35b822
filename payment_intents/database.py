from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

from payment_intents.config import get_settings

DATABASE_URL = get_settings().database_url


def make_engine(url: str):
    return create_engine(
        url,
        connect_args={"check_same_thread": False} if url.startswith("sqlite") else {}
    )


def make_session_factory(bind):
    # Store methods hand back detached rows, so keep attributes loaded after commit
    return sessionmaker(bind=bind, autocommit=False, autoflush=False, expire_on_commit=False)


engine = make_engine(DATABASE_URL)
SessionLocal = make_session_factory(engine)
Base = declarative_base()
