from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from nepshop.config import DATABASE_URL

engine = create_engine(DATABASE_URL, pool_pre_ping=True)
SessionLocal = sessionmaker(bind=engine, autoflush=False)

Base = declarative_base()


def get_db():
    """Yield a request-scoped session from the shared connection pool."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind=None):
    # models must be imported so their tables are registered on Base.metadata
    import nepshop.models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
