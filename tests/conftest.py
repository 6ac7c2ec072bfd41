"""
Pytest configuration and fixtures for SqlBridge tests.
"""
import os
import sys
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

# Make the flat top-level modules (config, db, services, ...) importable
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))


@pytest.fixture
def mock_db():
    """
    Patch psycopg2.connect so no server is needed.

    Yields (connect, conn, cur): the patched connect function, the
    connection it returns and the cursor handed out by ``conn.cursor()``.
    """
    with patch("db.connection.psycopg2.connect") as connect:
        conn = MagicMock(name="connection")
        conn.closed = 0
        cur = MagicMock(name="cursor")
        conn.cursor.return_value.__enter__.return_value = cur
        conn.cursor.return_value.__exit__.return_value = False
        connect.return_value = conn
        yield connect, conn, cur


@pytest.fixture(scope="session")
def live_dsn():
    """Connection string of the reference database, or skip."""
    dsn = os.environ.get("SQLBRIDGE_TEST_DATABASE_URL")
    if not dsn:
        pytest.skip("SQLBRIDGE_TEST_DATABASE_URL not set")
    return dsn
