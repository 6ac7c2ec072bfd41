"""
db/commands.py
--------------
The four data operations: scalar query, row-set query, non-query update
and connection test.

Every call opens its own connection, runs a single statement inside its
own transaction and releases the connection before returning. Driver
errors are rolled back, logged and re-raised to the caller unchanged.
"""

from typing import Any, Callable, Mapping, Optional

import pandas as pd
import psycopg2

from config import COMMAND_TIMEOUT
from db.connection import open_connection
from db.params import bind_parameters
from utils.logger import get_logger

logger = get_logger(__name__)


def _run(
    query: str,
    connection_string: Optional[str],
    parameters: Optional[Mapping[str, Any]],
    timeout: Optional[int],
    command_timeout: Optional[int],
    fetch: Callable,
):
    """
    Execute ``query`` and hand the open cursor to ``fetch``.

    Parameters are bound before any connection is opened, so an invalid
    parameter map never touches the server.
    """
    sql, args = bind_parameters(query, parameters)
    limit = COMMAND_TIMEOUT if command_timeout is None else command_timeout

    with open_connection(connection_string, timeout) as conn:
        try:
            with conn.cursor() as cur:
                if limit:
                    cur.execute("SET LOCAL statement_timeout = %s", (int(limit * 1000),))
                cur.execute(sql, args)
                result = fetch(cur)
            conn.commit()
            return result
        except Exception as e:
            logger.error(f"Statement failed: {e}")
            # A dropped connection cannot be rolled back; the caller gets the
            # original error either way.
            if not conn.closed:
                try:
                    conn.rollback()
                except psycopg2.Error as rollback_error:
                    logger.warning(f"Rollback failed: {rollback_error}")
            raise


def _fetch_scalar(cur) -> Any:
    if cur.description is None:
        return None
    row = cur.fetchone()
    return row[0] if row else None


def _fetch_frame(cur) -> pd.DataFrame:
    if cur.description is None:
        return pd.DataFrame()
    columns = [col[0] for col in cur.description]
    return pd.DataFrame(cur.fetchall(), columns=columns)


def _fetch_rowcount(cur) -> int:
    return cur.rowcount


def invoke_scalar(
    query: str,
    connection_string: Optional[str] = None,
    parameters: Optional[Mapping[str, Any]] = None,
    timeout: Optional[int] = None,
    command_timeout: Optional[int] = None,
) -> Any:
    """
    Run a query and return the first column of its first row.

    Args:
        query: SQL text, parameters written as ``@name``.
        connection_string: libpq DSN or URL. Defaults to DATABASE_URL.
        parameters: Optional mapping of parameter name to value.
        timeout: Connect timeout in seconds.
        command_timeout: Statement timeout in seconds (0 = no limit).

    Returns:
        The scalar value, or None when the query produced no rows.
    """
    value = _run(query, connection_string, parameters, timeout, command_timeout, _fetch_scalar)
    logger.info("Scalar query executed.")
    return value


def invoke_query(
    query: str,
    connection_string: Optional[str] = None,
    parameters: Optional[Mapping[str, Any]] = None,
    timeout: Optional[int] = None,
    command_timeout: Optional[int] = None,
) -> pd.DataFrame:
    """
    Run a query and return its rows as a DataFrame.

    Column names come from the cursor description, so an empty result
    still carries its columns.
    """
    frame = _run(query, connection_string, parameters, timeout, command_timeout, _fetch_frame)
    logger.info(f"Query returned {len(frame)} row(s).")
    return frame


def invoke_update(
    query: str,
    connection_string: Optional[str] = None,
    parameters: Optional[Mapping[str, Any]] = None,
    timeout: Optional[int] = None,
    command_timeout: Optional[int] = None,
) -> int:
    """Run a non-query statement and return the number of affected rows."""
    count = _run(query, connection_string, parameters, timeout, command_timeout, _fetch_rowcount)
    logger.info(f"Update affected {count} row(s).")
    return count


def test_connection(
    connection_string: Optional[str] = None, timeout: Optional[int] = None
) -> bool:
    """
    Check that the server is reachable and accepts the credentials.

    Returns:
        True if ``SELECT 1`` succeeds, False on any driver error.
    """
    try:
        with open_connection(connection_string, timeout) as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1")
                row = cur.fetchone()
            return bool(row) and row[0] == 1
    except psycopg2.Error as e:
        logger.warning(f"Connection test failed: {e}")
        return False
