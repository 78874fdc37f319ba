"""
Unit tests for storage layer.

Tests schema creation, scan persistence, profiles and quota rows.
"""

import os
import sqlite3
import tempfile
from datetime import date, datetime

import pytest

from scam_guard.storage.db import get_connection
from scam_guard.storage.models import Profile, ScanRecord
from scam_guard.storage.repository import (
    ScanRepository,
    fetch_daily_scan_count,
    fetch_quota_records,
    get_profile,
    initialize_schema,
    reserve_daily_scan,
    upsert_profile
)


def make_record(user_id="user-1", created_at=None, risk_level="safe", risk_score=5, analysis="Looks fine"):
    return ScanRecord(
        user_id=user_id,
        scan_type="text",
        content="hello",
        risk_level=risk_level,
        risk_score=risk_score,
        analysis=analysis,
        created_at=created_at or datetime(2024, 1, 1, 12, 0, 0)
    )


class TestStorageSchema:
    """Test database schema creation and structure."""
    
    def test_schema_creation(self):
        """Verify all tables are created."""
        with tempfile.TemporaryDirectory() as temp_dir:
            db_path = os.path.join(temp_dir, "test.db")
            initialize_schema(db_path)
            
            conn = get_connection(db_path)
            try:
                cursor = conn.execute("SELECT name FROM sqlite_master WHERE type='table' ORDER BY name")
                tables = {row[0] for row in cursor.fetchall()}
                assert {"profiles", "scans", "daily_scan_limits", "alerts"} <= tables
                
                cursor = conn.execute("PRAGMA table_info(scans)")
                column_names = [col[1] for col in cursor.fetchall()]
                assert column_names == [
                    'id', 'user_id', 'scan_type', 'content', 'file_type',
                    'risk_level', 'risk_score', 'analysis', 'created_at'
                ]
            finally:
                conn.close()
    
    def test_schema_creation_is_idempotent(self):
        """Running initialization twice keeps existing data."""
        with tempfile.TemporaryDirectory() as temp_dir:
            db_path = os.path.join(temp_dir, "test.db")
            initialize_schema(db_path)
            ScanRepository(db_path).append(make_record())
            initialize_schema(db_path)
            
            assert len(ScanRepository(db_path).list_by_user("user-1")) == 1
    
    def test_quota_rows_are_unique_per_user_and_day(self):
        """The (user_id, scan_date) uniqueness constraint is enforced."""
        with tempfile.TemporaryDirectory() as temp_dir:
            db_path = os.path.join(temp_dir, "test.db")
            initialize_schema(db_path)
            
            conn = get_connection(db_path)
            try:
                conn.execute("INSERT INTO daily_scan_limits VALUES ('u', '2024-01-01', 1)")
                with pytest.raises(sqlite3.IntegrityError):
                    conn.execute("INSERT INTO daily_scan_limits VALUES ('u', '2024-01-01', 2)")
            finally:
                conn.close()


class TestScanRepository:
    """Test scan record persistence."""
    
    def setup_method(self):
        """Set up test environment."""
        self.temp_dir = tempfile.mkdtemp()
        self.db_path = os.path.join(self.temp_dir, "test.db")
        initialize_schema(self.db_path)
        self.repo = ScanRepository(self.db_path)
    
    def teardown_method(self):
        """Clean up test environment."""
        import shutil
        shutil.rmtree(self.temp_dir, ignore_errors=True)
    
    def test_append_returns_id_and_stores_fields(self):
        """Appended records come back verbatim."""
        record = ScanRecord(
            user_id="user-1",
            scan_type="file",
            content="invoice.pdf",
            file_type="application/pdf",
            risk_level="fraudulent",
            risk_score=93,
            analysis="Fake invoice",
            created_at=datetime(2024, 3, 5, 8, 30, 0)
        )
        record_id = self.repo.append(record)
        
        stored = self.repo.list_by_user("user-1")
        assert len(stored) == 1
        assert stored[0].id == record_id
        assert stored[0].scan_type == "file"
        assert stored[0].content == "invoice.pdf"
        assert stored[0].file_type == "application/pdf"
        assert stored[0].risk_level == "fraudulent"
        assert stored[0].risk_score == 93
        assert stored[0].analysis == "Fake invoice"
        assert stored[0].created_at == datetime(2024, 3, 5, 8, 30, 0)
    
    def test_list_by_user_newest_first(self):
        """Records are ordered by creation time, newest first."""
        self.repo.append(make_record(created_at=datetime(2024, 1, 1), analysis="first"))
        self.repo.append(make_record(created_at=datetime(2024, 1, 3), analysis="third"))
        self.repo.append(make_record(created_at=datetime(2024, 1, 2), analysis="second"))
        
        analyses = [r.analysis for r in self.repo.list_by_user("user-1")]
        assert analyses == ["third", "second", "first"]
    
    def test_list_by_user_is_scoped_and_limited(self):
        """Only the user's own records are returned, up to the limit."""
        for day in range(1, 4):
            self.repo.append(make_record(created_at=datetime(2024, 1, day)))
        self.repo.append(make_record(user_id="someone-else"))
        
        assert len(self.repo.list_by_user("user-1")) == 3
        assert len(self.repo.list_by_user("user-1", limit=2)) == 2
        assert len(self.repo.list_by_user("someone-else")) == 1
    
    def test_latest_for_user(self):
        """Latest record is the newest one, None when there are none."""
        assert self.repo.latest_for_user("user-1") is None
        self.repo.append(make_record(created_at=datetime(2024, 1, 1), analysis="old"))
        self.repo.append(make_record(created_at=datetime(2024, 2, 1), analysis="new"))
        
        assert self.repo.latest_for_user("user-1").analysis == "new"
    
    def test_risk_score_out_of_range_rejected(self):
        """The table refuses scores outside 0-100."""
        with pytest.raises(sqlite3.IntegrityError):
            self.repo.append(make_record(risk_score=101))


class TestProfiles:
    """Test profile reads and the billing upsert."""
    
    def setup_method(self):
        self.temp_dir = tempfile.mkdtemp()
        self.db_path = os.path.join(self.temp_dir, "test.db")
        initialize_schema(self.db_path)
    
    def teardown_method(self):
        import shutil
        shutil.rmtree(self.temp_dir, ignore_errors=True)
    
    def test_missing_profile(self):
        assert get_profile("nobody", self.db_path) is None
    
    def test_upsert_creates_and_updates(self):
        """Upsert changes the tier and keeps details not given again."""
        upsert_profile(Profile("user-1", "free", email="a@example.com", full_name="Ada"), self.db_path)
        upsert_profile(Profile("user-1", "annual"), self.db_path)
        
        profile = get_profile("user-1", self.db_path)
        assert profile.subscription_tier == "annual"
        assert profile.email == "a@example.com"
        assert profile.full_name == "Ada"


class TestDailyScanRows:
    """Test the conditional quota update."""
    
    def setup_method(self):
        self.temp_dir = tempfile.mkdtemp()
        self.db_path = os.path.join(self.temp_dir, "test.db")
        initialize_schema(self.db_path)
    
    def teardown_method(self):
        import shutil
        shutil.rmtree(self.temp_dir, ignore_errors=True)
    
    def test_first_reservation_creates_row(self):
        day = date(2024, 1, 1)
        assert fetch_daily_scan_count("u", day, self.db_path) == 0
        assert reserve_daily_scan("u", day, 3, self.db_path) == 1
        assert fetch_daily_scan_count("u", day, self.db_path) == 1
    
    def test_reservation_stops_at_limit(self):
        day = date(2024, 1, 1)
        results = [reserve_daily_scan("u", day, 3, self.db_path) for _ in range(5)]
        assert results == [1, 2, 3, None, None]
        assert fetch_daily_scan_count("u", day, self.db_path) == 3
    
    def test_zero_limit_never_reserves(self):
        assert reserve_daily_scan("u", date(2024, 1, 1), 0, self.db_path) is None
        assert fetch_quota_records("u", self.db_path) == []
    
    def test_quota_records_newest_day_first(self):
        reserve_daily_scan("u", date(2024, 1, 1), 10, self.db_path)
        reserve_daily_scan("u", date(2024, 1, 2), 10, self.db_path)
        reserve_daily_scan("u", date(2024, 1, 2), 10, self.db_path)
        
        records = fetch_quota_records("u", self.db_path)
        assert [(r.scan_date, r.scan_count) for r in records] == [
            (date(2024, 1, 2), 2),
            (date(2024, 1, 1), 1),
        ]
