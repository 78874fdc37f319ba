"""
Tests for the daily quota ledger.

Includes concurrent reservations against a real SQLite file.
"""

import os
import tempfile
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime, timezone
from unittest.mock import patch
import sqlite3

import pytest

from scam_guard.core.errors import StorageFault
from scam_guard.core.quota import Allowed, Denied, QuotaLedger, current_scan_date
from scam_guard.storage.repository import initialize_schema


class TestQuotaLedger:
    """Test reserve-if-under-limit semantics."""
    
    def setup_method(self):
        """Set up test environment."""
        self.temp_dir = tempfile.mkdtemp()
        self.db_path = os.path.join(self.temp_dir, "test.db")
        initialize_schema(self.db_path)
        self.ledger = QuotaLedger(self.db_path)
        self.day = date(2024, 6, 1)
    
    def teardown_method(self):
        """Clean up test environment."""
        import shutil
        shutil.rmtree(self.temp_dir, ignore_errors=True)
    
    def test_sequential_reservations_up_to_limit(self):
        """Exactly limit reservations succeed, the rest are denied."""
        results = [self.ledger.try_reserve("u", self.day, 10) for _ in range(12)]
        
        assert results[:10] == [Allowed(new_count=n) for n in range(1, 11)]
        assert results[10:] == [Denied(current_count=10), Denied(current_count=10)]
        assert self.ledger.get_count("u", self.day) == 10
    
    @pytest.mark.parametrize("extra", [1, 5, 20])
    def test_concurrent_reservations_never_exceed_limit(self, extra):
        """limit + k racing callers: exactly limit succeed."""
        limit = 10
        barrier = threading.Barrier(limit + extra)
        
        def reserve(_):
            barrier.wait()
            return QuotaLedger(self.db_path).try_reserve("racer", self.day, limit)
        
        with ThreadPoolExecutor(max_workers=limit + extra) as pool:
            results = list(pool.map(reserve, range(limit + extra)))
        
        allowed = [r for r in results if isinstance(r, Allowed)]
        denied = [r for r in results if isinstance(r, Denied)]
        assert len(allowed) == limit
        assert len(denied) == extra
        assert sorted(r.new_count for r in allowed) == list(range(1, limit + 1))
        assert self.ledger.get_count("racer", self.day) == limit
    
    def test_last_slot_race_has_single_winner(self):
        """With count at limit - 1, only one of many racers gets the slot."""
        for _ in range(9):
            self.ledger.try_reserve("u", self.day, 10)
        
        barrier = threading.Barrier(8)
        
        def reserve(_):
            barrier.wait()
            return QuotaLedger(self.db_path).try_reserve("u", self.day, 10)
        
        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(reserve, range(8)))
        
        assert results.count(Allowed(new_count=10)) == 1
        assert results.count(Denied(current_count=10)) == 7
    
    def test_days_are_independent(self):
        """A user at the limit today can reserve tomorrow."""
        for _ in range(10):
            self.ledger.try_reserve("u", self.day, 10)
        assert isinstance(self.ledger.try_reserve("u", self.day, 10), Denied)
        
        assert self.ledger.try_reserve("u", date(2024, 6, 2), 10) == Allowed(new_count=1)
    
    def test_users_are_independent(self):
        for _ in range(10):
            self.ledger.try_reserve("a", self.day, 10)
        assert self.ledger.try_reserve("b", self.day, 10) == Allowed(new_count=1)
    
    def test_storage_error_becomes_storage_fault(self):
        with patch("scam_guard.core.quota.reserve_daily_scan", side_effect=sqlite3.OperationalError("disk I/O error")):
            with pytest.raises(StorageFault):
                self.ledger.try_reserve("u", self.day, 10)
    
    def test_missing_schema_is_storage_fault(self):
        ledger = QuotaLedger(os.path.join(self.temp_dir, "empty.db"))
        with pytest.raises(StorageFault):
            ledger.get_count("u", self.day)


class TestCurrentScanDate:
    """Test calendar day resolution."""
    
    def test_utc_date(self):
        now = datetime(2024, 6, 1, 23, 30, tzinfo=timezone.utc)
        assert current_scan_date("UTC", now) == date(2024, 6, 1)
    
    def test_configured_timezone_shifts_day(self):
        now = datetime(2024, 6, 1, 23, 30, tzinfo=timezone.utc)
        assert current_scan_date("Asia/Kolkata", now) == date(2024, 6, 2)
        assert current_scan_date("America/New_York", now) == date(2024, 6, 1)
