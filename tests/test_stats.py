"""
Tests for scan statistics.
"""

from datetime import datetime

from scam_guard.core.stats import compute_scan_stats, display_name
from scam_guard.storage.models import Profile, ScanRecord


def record(level, created_at):
    return ScanRecord(
        user_id="u",
        scan_type="text",
        content="c",
        risk_level=level,
        risk_score=10,
        analysis="a",
        created_at=created_at
    )


class TestScanStats:
    """Test aggregation of scan records."""
    
    def test_counts_by_level_and_month(self):
        records = [
            record("safe", datetime(2024, 2, 3)),
            record("fraudulent", datetime(2024, 1, 9)),
            record("suspicious", datetime(2024, 2, 1)),
            record("safe", datetime(2024, 2, 28)),
        ]
        
        stats = compute_scan_stats(records)
        
        assert stats.total_scans == 4
        assert stats.safe_count == 2
        assert stats.suspicious_count == 1
        assert stats.fraudulent_count == 1
        assert list(stats.monthly.items()) == [("2024-01", 1), ("2024-02", 3)]
    
    def test_empty(self):
        stats = compute_scan_stats([])
        assert stats.total_scans == 0
        assert stats.monthly == {}


class TestDisplayName:
    """Test greeting name fallbacks."""
    
    def test_full_name_first(self):
        assert display_name(Profile("u", "free", email="ada@example.com", full_name="Ada")) == "Ada"
    
    def test_email_local_part(self):
        assert display_name(Profile("u", "free", email="ada@example.com")) == "ada"
    
    def test_fallback(self):
        assert display_name(None) == "User"
        assert display_name(Profile("u", "free")) == "User"
