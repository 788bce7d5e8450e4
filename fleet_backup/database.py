from typing import List

from sqlalchemy import text
from sqlalchemy.engine import URL
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import create_engine

from .exceptions import FatalEnumerationError
from .logger import get_logger
from .schemas import ServerSettings

logger = get_logger(__name__)

MAINTENANCE_DATABASE = "postgres"
LIST_DATABASES_QUERY = text("SELECT datname FROM pg_database WHERE datistemplate = false")


def get_engine(server: ServerSettings, database: str = MAINTENANCE_DATABASE):
    url = URL.create(
        "postgresql+psycopg2",
        username=server.username,
        password=server.password,
        host=server.host,
        port=server.port,
        database=database,
    )
    return create_engine(url, connect_args={"sslmode": "disable"})


def list_databases(server: ServerSettings) -> List[str]:
    """
    Returns the names of all non-template databases on the server, in catalog order.
    """
    logger.debug(f"Listing databases on {server.host}:{server.port} as {server.username}")
    engine = get_engine(server)
    try:
        with engine.connect() as connection:
            rows = connection.execute(LIST_DATABASES_QUERY).all()
    except SQLAlchemyError as e:
        logger.error(f"Failed to list databases on {server.host}:{server.port}: {e}")
        raise FatalEnumerationError(
            "Failed to list databases",
            details={"host": server.host, "port": server.port, "error": str(e)},
        ) from e
    finally:
        engine.dispose()

    databases = [row[0] for row in rows]
    logger.info(f"Found {len(databases)} databases on {server.host}:{server.port}")
    return databases
