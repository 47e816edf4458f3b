"""Database initialization script for creating tables and setting up the schema."""

import logging

from sqlalchemy import MetaData, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError, SQLAlchemyError

import fleetmon.models  # noqa: F401  registers every table on Base.metadata
from fleetmon.models.base import Base
from fleetmon.db.session import create_db_engine

logger = logging.getLogger(__name__)


def init_database(engine: Engine) -> bool:
    """Initialize the database by creating all tables.

    Args:
        engine: SQLAlchemy engine

    Returns:
        True once the schema exists
    """
    try:
        Base.metadata.create_all(engine)
        logger.info("Database initialization completed successfully")
        logger.info(f"Tables available: {', '.join(sorted(Base.metadata.tables))}")
        return True
    except OperationalError as e:
        logger.error(f"Database operation failed: {e}")
        raise


def check_database_health(engine: Engine) -> bool:
    """Check if the database is accessible and healthy.

    Args:
        engine: SQLAlchemy engine

    Returns:
        True if database is healthy, False otherwise
    """
    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {e}")
        return False


def reset_database(engine: Engine) -> None:
    """Reset the database by dropping all tables and recreating them.

    WARNING: This will delete all data!

    Args:
        engine: SQLAlchemy engine
    """
    metadata = MetaData()
    metadata.reflect(bind=engine)
    metadata.drop_all(engine)
    logger.info("All tables dropped")

    init_database(engine)
    logger.info("Database reset completed")


if __name__ == "__main__":
    import sys

    from fleetmon.config.settings import get_settings

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    engine = create_db_engine(get_settings().database_url)

    if len(sys.argv) > 1 and sys.argv[1] == "reset":
        print("WARNING: This will DELETE all data in the database!")
        confirm = input("Type 'YES' to confirm: ")
        if confirm == "YES":
            reset_database(engine)
            print("Database reset complete")
        else:
            print("Reset cancelled")
    elif len(sys.argv) > 1 and sys.argv[1] == "check":
        healthy = check_database_health(engine)
        print(f"Database health: {'OK' if healthy else 'FAILED'}")
    else:
        init_database(engine)
