"""
startup.py — Schema bootstrap at app boot

A fresh database gets every table from the ORM metadata; existing tables
are left alone (checkfirst). Alembic owns changes after the baseline.

Called by: main.py lifespan
Depends on: database.py (engine), models (Base)
"""

import os

from loguru import logger

from .database import engine
from .models import Base


def run_startup_migrations() -> None:
    if os.environ.get("TESTING"):
        logger.debug("TESTING set, schema bootstrap skipped")
        return
    Base.metadata.create_all(bind=engine, checkfirst=True)
    logger.info("Schema bootstrap done ({} tables)", len(Base.metadata.tables))
