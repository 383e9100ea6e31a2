from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from micaa.core.config import settings

DATABASE_URL = settings.DATABASE_URL

connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(DATABASE_URL, pool_pre_ping=True, connect_args=connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db() -> None:
    """Create missing tables. Importing tables registers them on ``Base``."""
    from micaa.db import tables  # noqa: F401
    from micaa.db.base import Base

    Base.metadata.create_all(bind=engine)
