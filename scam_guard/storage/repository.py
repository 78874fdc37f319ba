"""
Repository pattern for data access.

Handles database operations and data persistence logic.
"""

from datetime import date, datetime
from typing import List, Optional, Tuple

from .db import get_connection
from .models import AlertRecord, Profile, QuotaRecord, ScanRecord


_SCAN_COLUMNS = """
    id, user_id, scan_type, content, file_type,
    risk_level, risk_score, analysis, created_at
"""


def _row_to_scan(row: Tuple) -> ScanRecord:
    return ScanRecord(
        id=row[0],
        user_id=row[1],
        scan_type=row[2],
        content=row[3],
        file_type=row[4],
        risk_level=row[5],
        risk_score=row[6],
        analysis=row[7],
        created_at=datetime.fromisoformat(row[8])
    )


class ScanRepository:
    """Append-only store of completed scans.
    
    Records are inserted once and only read afterwards. Reads are always
    scoped to a single user and ordered newest first.
    """
    
    def __init__(self, db_path: str = "scam_guard.db"):
        """Initialize the repository with a database path.
        
        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path
    
    def append(self, record: ScanRecord) -> int:
        """Insert a scan record and return its id.
        
        Args:
            record: The completed scan to store
            
        Returns:
            Database id of the new row
            
        Raises:
            sqlite3.Error: On any storage failure
        """
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute("""
                INSERT INTO scans
                (user_id, scan_type, content, file_type, risk_level,
                 risk_score, analysis, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                record.user_id,
                record.scan_type,
                record.content,
                record.file_type,
                record.risk_level,
                record.risk_score,
                record.analysis,
                record.created_at.isoformat()
            ))
            conn.commit()
            return cursor.lastrowid
        finally:
            conn.close()
    
    def list_by_user(self, user_id: str, limit: Optional[int] = None) -> List[ScanRecord]:
        """Get a user's scans ordered by creation time (newest first).
        
        Args:
            user_id: Owner of the scans
            limit: Optional maximum number of records to return
            
        Returns:
            List of scan records, most recent first
        """
        conn = get_connection(self.db_path)
        try:
            query = f"SELECT {_SCAN_COLUMNS} FROM scans WHERE user_id = ? ORDER BY created_at DESC, id DESC"
            params: list = [user_id]
            if limit is not None:
                query += " LIMIT ?"
                params.append(limit)
            cursor = conn.execute(query, params)
            return [_row_to_scan(row) for row in cursor.fetchall()]
        finally:
            conn.close()
    
    def latest_for_user(self, user_id: str) -> Optional[ScanRecord]:
        """Most recent scan of a user, or None when they have none."""
        records = self.list_by_user(user_id, limit=1)
        return records[0] if records else None


def initialize_schema(db_path: str = "scam_guard.db") -> None:
    """Create the profiles, scans, daily_scan_limits and alerts tables if missing.
    
    The UNIQUE constraint on daily_scan_limits(user_id, scan_date) is what
    the atomic quota reservation upserts against.
    
    Args:
        db_path: Path to SQLite database file
    """
    conn = get_connection(db_path)
    try:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS profiles (
                user_id TEXT PRIMARY KEY,
                email TEXT,
                full_name TEXT,
                subscription_tier TEXT NOT NULL DEFAULT 'free'
            )
        """)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS scans (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT NOT NULL,
                scan_type TEXT NOT NULL,
                content TEXT NOT NULL,
                file_type TEXT,
                risk_level TEXT NOT NULL,
                risk_score INTEGER NOT NULL CHECK (risk_score BETWEEN 0 AND 100),
                analysis TEXT NOT NULL,
                created_at TEXT NOT NULL
            )
        """)
        conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_scans_user_created
            ON scans (user_id, created_at DESC)
        """)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS daily_scan_limits (
                user_id TEXT NOT NULL,
                scan_date TEXT NOT NULL,
                scan_count INTEGER NOT NULL DEFAULT 0 CHECK (scan_count >= 0),
                UNIQUE (user_id, scan_date)
            )
        """)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS alerts (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                title TEXT NOT NULL,
                description TEXT NOT NULL,
                category TEXT NOT NULL,
                severity TEXT NOT NULL,
                created_at TEXT NOT NULL
            )
        """)
        conn.commit()
    finally:
        conn.close()


def get_profile(user_id: str, db_path: str = "scam_guard.db") -> Optional[Profile]:
    """Fetch a user's profile, or None when no row exists."""
    conn = get_connection(db_path)
    try:
        cursor = conn.execute(
            "SELECT user_id, subscription_tier, email, full_name FROM profiles WHERE user_id = ?",
            (user_id,)
        )
        row = cursor.fetchone()
        if row is None:
            return None
        return Profile(user_id=row[0], subscription_tier=row[1], email=row[2], full_name=row[3])
    finally:
        conn.close()


def upsert_profile(profile: Profile, db_path: str = "scam_guard.db") -> None:
    """Create or replace a user's profile.
    
    This is the write path used by billing; the scan pipeline only reads
    profiles.
    
    Args:
        profile: Profile to store
        db_path: Path to SQLite database file
    """
    conn = get_connection(db_path)
    try:
        conn.execute("""
            INSERT INTO profiles (user_id, email, full_name, subscription_tier)
            VALUES (?, ?, ?, ?)
            ON CONFLICT (user_id) DO UPDATE SET
                email = COALESCE(excluded.email, profiles.email),
                full_name = COALESCE(excluded.full_name, profiles.full_name),
                subscription_tier = excluded.subscription_tier
        """, (profile.user_id, profile.email, profile.full_name, profile.subscription_tier))
        conn.commit()
    finally:
        conn.close()


def reserve_daily_scan(
    user_id: str,
    scan_date: date,
    limit: int,
    db_path: str = "scam_guard.db"
) -> Optional[int]:
    """Increment the day's scan count only while it is below limit.
    
    The check and the increment are one statement against the
    (user_id, scan_date) row, so concurrent callers cannot both pass the
    check. A missing row counts as zero and is created with count 1.
    
    Args:
        user_id: User consuming a scan
        scan_date: Calendar day of the counter
        limit: Maximum committed count for the day
        db_path: Path to SQLite database file
        
    Returns:
        The new count when the reservation succeeded, None when the
        counter was already at the limit
        
    Raises:
        sqlite3.Error: On any storage failure
    """
    if limit <= 0:
        return None
    
    conn = get_connection(db_path)
    try:
        cursor = conn.execute("""
            INSERT INTO daily_scan_limits (user_id, scan_date, scan_count)
            VALUES (?, ?, 1)
            ON CONFLICT (user_id, scan_date) DO UPDATE
                SET scan_count = daily_scan_limits.scan_count + 1
                WHERE daily_scan_limits.scan_count < ?
            RETURNING scan_count
        """, (user_id, scan_date.isoformat(), limit))
        rows = cursor.fetchall()
        conn.commit()
        return rows[0][0] if rows else None
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def fetch_daily_scan_count(user_id: str, scan_date: date, db_path: str = "scam_guard.db") -> int:
    """Committed scan count for a user on a day (0 when no row exists)."""
    conn = get_connection(db_path)
    try:
        cursor = conn.execute(
            "SELECT scan_count FROM daily_scan_limits WHERE user_id = ? AND scan_date = ?",
            (user_id, scan_date.isoformat())
        )
        row = cursor.fetchone()
        return row[0] if row is not None else 0
    finally:
        conn.close()


def fetch_quota_records(user_id: str, db_path: str = "scam_guard.db") -> List[QuotaRecord]:
    """All quota rows of a user, newest day first."""
    conn = get_connection(db_path)
    try:
        cursor = conn.execute("""
            SELECT user_id, scan_date, scan_count FROM daily_scan_limits
            WHERE user_id = ? ORDER BY scan_date DESC
        """, (user_id,))
        return [
            QuotaRecord(user_id=row[0], scan_date=date.fromisoformat(row[1]), scan_count=row[2])
            for row in cursor.fetchall()
        ]
    finally:
        conn.close()


def insert_alert(alert: AlertRecord, db_path: str = "scam_guard.db") -> int:
    """Publish a security alert and return its id."""
    conn = get_connection(db_path)
    try:
        cursor = conn.execute("""
            INSERT INTO alerts (title, description, category, severity, created_at)
            VALUES (?, ?, ?, ?, ?)
        """, (
            alert.title,
            alert.description,
            alert.category,
            alert.severity,
            alert.created_at.isoformat()
        ))
        conn.commit()
        return cursor.lastrowid
    finally:
        conn.close()


def fetch_recent_alerts(limit: Optional[int] = None, db_path: str = "scam_guard.db") -> List[AlertRecord]:
    """Fetch published alerts, newest first.
    
    Args:
        limit: Optional maximum number of alerts to return
        db_path: Path to SQLite database file
        
    Returns:
        List of alerts ordered by creation time (newest first)
    """
    conn = get_connection(db_path)
    try:
        query = """
            SELECT id, title, description, category, severity, created_at
            FROM alerts ORDER BY created_at DESC, id DESC
        """
        params: list = []
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)
        cursor = conn.execute(query, params)
        return [
            AlertRecord(
                id=row[0],
                title=row[1],
                description=row[2],
                category=row[3],
                severity=row[4],
                created_at=datetime.fromisoformat(row[5])
            )
            for row in cursor.fetchall()
        ]
    finally:
        conn.close()
