"""
Database base configuration and session management.
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from dompet.core.config import settings

# Create database engine
if settings.DATABASE_URL.startswith("sqlite"):
    # Local runs and the test suite
    engine_options = {"connect_args": {"check_same_thread": False}}
else:
    engine_options = {"pool_size": 10, "max_overflow": 20}

engine = create_engine(
    settings.DATABASE_URL,
    pool_pre_ping=True,
    echo=False,  # Set to True for SQL debugging
    **engine_options,
)

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Create base class for models
Base = declarative_base()

# Models register themselves on import of the `dompet.models` package,
# which pulls in every model module.


def get_db():
    """
    Get database session.

    Yields:
        Session: SQLAlchemy database session
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
