"""
Database migration utilities.
"""
from sqlalchemy import text

from . import engine
from ..models import Base
from ..logging_config import logger


def run_migrations():
    """
    Create every table declared in models.py.

    Safe to run multiple times: existing tables are left untouched. On
    PostgreSQL the pgvector extension is enabled first so that the vector
    index table can be created next to the metadata tables.
    """
    if engine.dialect.name == "postgresql":
        with engine.begin() as conn:
            conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))

    Base.metadata.create_all(engine)
    logger.info("Database schema ready", tables=sorted(Base.metadata.tables))


def drop_all():
    """Drop every metadata table. Used by the test-suite between tests."""
    Base.metadata.drop_all(engine)
