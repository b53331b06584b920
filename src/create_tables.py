import logging

from sqlalchemy.orm import sessionmaker

from config import get_settings
from database import Base, create_session_factory
# Imported so the models register with Base
from modules.auth.models.user import User  # noqa: F401
from modules.spreadsheet.models.sheet import SheetCell, SheetRow  # noqa: F401

logger = logging.getLogger(__name__)


def create_tables(session_factory: sessionmaker):
    """Creates every table in the database"""
    with session_factory() as session:
        Base.metadata.create_all(bind=session.get_bind())
    logger.info("Tables ready: %s", sorted(Base.metadata.tables.keys()))


if __name__ == "__main__":
    create_tables(create_session_factory(get_settings().database_url))
