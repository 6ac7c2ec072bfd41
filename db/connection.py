"""
db/connection.py
----------------
Opens one PostgreSQL connection per call.
There is no pool: every operation acquires a fresh connection and
releases it before returning, whatever the outcome.
"""

from contextlib import contextmanager
from typing import Iterator, Optional

import psycopg2

from config import CONNECT_TIMEOUT, DATABASE_URL
from utils.logger import get_logger

logger = get_logger(__name__)


@contextmanager
def open_connection(
    connection_string: Optional[str] = None, timeout: Optional[int] = None
) -> Iterator["psycopg2.extensions.connection"]:
    """
    Open a connection and close it when the block exits.

    Args:
        connection_string: libpq DSN or URL. Defaults to DATABASE_URL.
        timeout: Connect timeout in seconds. Defaults to CONNECT_TIMEOUT.

    Yields:
        A psycopg2 connection object.

    Raises:
        psycopg2.OperationalError: If the server is unreachable or rejects
            the credentials. No connection is left open in that case.
    """
    dsn = connection_string or DATABASE_URL
    conn = psycopg2.connect(
        dsn, connect_timeout=timeout if timeout is not None else CONNECT_TIMEOUT
    )
    logger.debug("Connection opened.")
    try:
        yield conn
    finally:
        conn.close()
        logger.debug("Connection closed.")
