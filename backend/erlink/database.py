from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from erlink.config import DATABASE_URL


def build_engine(url: str):
    # sessions hop between FastAPI threadpool workers
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, connect_args=connect_args)


# --- SQLAlchemy setup ---
engine = build_engine(DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

# --- DB Session Dependency ---
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
