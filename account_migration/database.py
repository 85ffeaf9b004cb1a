"""SQLAlchemy engine construction."""

import logging

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine

from .config import Settings

logger = logging.getLogger(__name__)


def create_db_engine(settings: Settings) -> Engine:
    """Create the engine for the source database.

    Connections are opened lazily, so a bad host or password surfaces on
    the first query rather than here.
    """
    engine = create_engine(settings.database_url, pool_pre_ping=True, future=True)
    logger.debug(f"Database engine created for {engine.url.render_as_string(hide_password=True)}")
    return engine
