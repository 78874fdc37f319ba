"""
Daily scan quota ledger.

Owns the per-(user, calendar day) scan counters. The only way to consume
quota is try_reserve, which checks and increments in a single conditional
update so the committed count never passes the limit under concurrency.
A new calendar day simply has no row yet, which reads as zero.
"""

import logging
import sqlite3
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Optional, Union
from zoneinfo import ZoneInfo

from .errors import StorageFault
from scam_guard.storage.repository import fetch_daily_scan_count, reserve_daily_scan

logger = logging.getLogger(__name__)

DEFAULT_DAILY_LIMIT = 10


@dataclass(frozen=True)
class Allowed:
    """Reservation succeeded; new_count is the committed count after it."""
    new_count: int


@dataclass(frozen=True)
class Denied:
    """Reservation refused; the day's counter is already at the limit."""
    current_count: int


ReservationResult = Union[Allowed, Denied]


def current_scan_date(tz_name: str = "UTC", now: Optional[datetime] = None) -> date:
    """Calendar date that quota counters are keyed by.
    
    Args:
        tz_name: IANA timezone name the day boundary is taken in
        now: Optional aware instant to use instead of the current time
        
    Returns:
        The calendar date in tz_name
    """
    instant = now or datetime.now(timezone.utc)
    return instant.astimezone(ZoneInfo(tz_name)).date()


class QuotaLedger:
    """Atomic reserve-if-under-limit counters backed by daily_scan_limits."""
    
    def __init__(self, db_path: str = "scam_guard.db"):
        self.db_path = db_path
    
    def try_reserve(self, user_id: str, scan_date: date, limit: int = DEFAULT_DAILY_LIMIT) -> ReservationResult:
        """Claim one scan from a user's quota for the given day.
        
        If N callers race while the committed count is limit - 1, exactly
        one of them gets Allowed(limit) and the rest get Denied.
        
        Args:
            user_id: User consuming the scan
            scan_date: Calendar day the scan counts against
            limit: Maximum scans per day
            
        Returns:
            Allowed with the new count, or Denied with the current count
            
        Raises:
            StorageFault: If the ledger could not be read or written
        """
        try:
            new_count = reserve_daily_scan(user_id, scan_date, limit, self.db_path)
            if new_count is not None:
                logger.debug("Reserved scan %d/%d for %s on %s", new_count, limit, user_id, scan_date)
                return Allowed(new_count=new_count)
            current = fetch_daily_scan_count(user_id, scan_date, self.db_path)
        except sqlite3.Error as e:
            raise StorageFault(f"Quota reservation failed: {e}") from e
        
        logger.info("Quota denied for %s on %s (%d/%d)", user_id, scan_date, current, limit)
        return Denied(current_count=current)
    
    def get_count(self, user_id: str, scan_date: date) -> int:
        """Committed count for a user and day (diagnostic read)."""
        try:
            return fetch_daily_scan_count(user_id, scan_date, self.db_path)
        except sqlite3.Error as e:
            raise StorageFault(f"Quota read failed: {e}") from e
