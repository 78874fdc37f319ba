"""
Database connection management.

Provides SQLite connection for data persistence.
"""

import sqlite3
from pathlib import Path

# Seconds a writer waits on a locked database before giving up
BUSY_TIMEOUT_SECONDS = 30.0


def get_connection(db_path: str = "scam_guard.db") -> sqlite3.Connection:
    """Create and return a SQLite database connection with foreign keys enabled.
    
    Concurrent writers wait for the lock instead of failing immediately,
    so row updates from parallel requests are serialized by SQLite itself.
    
    Args:
        db_path: Path to SQLite database file
        
    Returns:
        SQLite connection with foreign key constraints enabled
    """
    path = Path(db_path)
    conn = sqlite3.connect(str(path), timeout=BUSY_TIMEOUT_SECONDS)
    conn.execute("PRAGMA foreign_keys = ON")
    return conn
