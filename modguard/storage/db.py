"""
Cost ledger connection.

The ledger is a single SQLite file shared by the CLI and every tracked SDK
client, so several processes may append to it at once.
"""

import sqlite3
from pathlib import Path

DEFAULT_DB_PATH = "modguard.db"

# Seconds a writer waits on another process's lock before failing
LEDGER_LOCK_TIMEOUT_SECONDS = 10.0


def get_connection(db_path: str = DEFAULT_DB_PATH) -> sqlite3.Connection:
    """Open the cost ledger, creating its parent directory if needed.

    Args:
        db_path: Path to the ledger file

    Returns:
        Connection that waits on concurrent writers instead of raising
        'database is locked' immediately
    """
    path = Path(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    return sqlite3.connect(str(path), timeout=LEDGER_LOCK_TIMEOUT_SECONDS)
