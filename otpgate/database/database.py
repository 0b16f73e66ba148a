from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from otpgate.config import DATABASE_URL, SQL_ECHO, DB_POOL_TIMEOUT, DB_STATEMENT_TIMEOUT_MS

if not DATABASE_URL:
    raise ValueError("DATABASE_URL environment variable not set")

# SQLAlchemy engine (sync version)
if DATABASE_URL.startswith("sqlite"):
    # Local dev / tests: sqlite does not take pool sizing arguments
    engine = create_engine(
        DATABASE_URL,
        echo=SQL_ECHO,
        connect_args={"check_same_thread": False},
    )
else:
    engine = create_engine(
        DATABASE_URL,
        echo=SQL_ECHO,
        pool_size=10,
        max_overflow=20,
        pool_timeout=DB_POOL_TIMEOUT,
        pool_pre_ping=True,
        # Every statement is bounded by the storage timeout
        connect_args={"options": f"-c statement_timeout={DB_STATEMENT_TIMEOUT_MS}"},
    )

# Session factory
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine
)

# Base class for all ORM models
Base = declarative_base()

# Dependency to get DB session in FastAPI routes
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
