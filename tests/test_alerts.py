"""
Unit tests for the security alerts feed.
"""

import os
import tempfile
from datetime import datetime

import pytest

from scam_guard.core.alerts import (
    AlertCategory,
    AlertSeverity,
    category_label,
    is_scam_category,
    list_alerts,
    parse_category,
    parse_severity,
    severity_rank
)
from scam_guard.storage.models import AlertRecord
from scam_guard.storage.repository import fetch_recent_alerts, initialize_schema, insert_alert


def make_alert(title, created_at, category="phishing", severity="high"):
    return AlertRecord(
        title=title,
        description=f"{title} details",
        category=category,
        severity=severity,
        created_at=created_at
    )


class TestAlertFeed:
    """Test alert persistence and ordering."""
    
    def setup_method(self):
        self.temp_dir = tempfile.mkdtemp()
        self.db_path = os.path.join(self.temp_dir, "test.db")
        initialize_schema(self.db_path)
    
    def teardown_method(self):
        if os.path.exists(self.db_path):
            os.remove(self.db_path)
        os.rmdir(self.temp_dir)
    
    def test_empty_feed(self):
        assert list_alerts(db_path=self.db_path) == []
    
    def test_newest_first(self):
        insert_alert(make_alert("Old", datetime(2024, 1, 1, 9, 0)), self.db_path)
        insert_alert(make_alert("Newest", datetime(2024, 3, 1, 9, 0)), self.db_path)
        insert_alert(make_alert("Middle", datetime(2024, 2, 1, 9, 0)), self.db_path)
        
        titles = [alert.title for alert in list_alerts(db_path=self.db_path)]
        assert titles == ["Newest", "Middle", "Old"]
    
    def test_same_timestamp_orders_by_latest_insert(self):
        moment = datetime(2024, 1, 1, 9, 0)
        first = insert_alert(make_alert("First", moment), self.db_path)
        second = insert_alert(make_alert("Second", moment), self.db_path)
        
        ids = [record.id for record in fetch_recent_alerts(db_path=self.db_path)]
        assert ids == [second, first]
    
    def test_limit(self):
        for day in range(1, 6):
            insert_alert(make_alert(f"Alert {day}", datetime(2024, 1, day)), self.db_path)
        
        feed = list_alerts(2, self.db_path)
        assert [alert.title for alert in feed] == ["Alert 5", "Alert 4"]
    
    def test_stored_values_resolve_to_enums(self):
        insert_alert(
            make_alert("Bank SMS", datetime(2024, 1, 1), category="Fraud", severity="CRITICAL"),
            self.db_path
        )
        
        alert = list_alerts(db_path=self.db_path)[0]
        assert alert.category is AlertCategory.FRAUD
        assert alert.severity is AlertSeverity.CRITICAL
        assert alert.description == "Bank SMS details"
        assert alert.created_at == datetime(2024, 1, 1)
    
    def test_unknown_stored_values_fall_back(self):
        insert_alert(
            make_alert("Odd", datetime(2024, 1, 1), category="spam", severity="urgent"),
            self.db_path
        )
        
        alert = list_alerts(db_path=self.db_path)[0]
        assert alert.category is AlertCategory.OTHER
        assert alert.severity is AlertSeverity.LOW


class TestAlertMappings:
    """Every severity and category has a mapping."""
    
    @pytest.mark.parametrize("severity", list(AlertSeverity))
    def test_every_severity_has_rank(self, severity):
        assert 1 <= severity_rank(severity) <= 4
    
    def test_severity_ranks_are_ordered(self):
        ranked = sorted(AlertSeverity, key=severity_rank, reverse=True)
        assert ranked == [
            AlertSeverity.CRITICAL,
            AlertSeverity.HIGH,
            AlertSeverity.MEDIUM,
            AlertSeverity.LOW
        ]
    
    @pytest.mark.parametrize("category", list(AlertCategory))
    def test_every_category_has_label(self, category):
        assert category_label(category)
        assert isinstance(is_scam_category(category), bool)
    
    def test_scam_categories(self):
        assert is_scam_category(AlertCategory.PHISHING)
        assert is_scam_category(AlertCategory.FRAUD)
        assert not is_scam_category(AlertCategory.MALWARE)
    
    @pytest.mark.parametrize("value", [None, "", "severe"])
    def test_unknown_severity_is_low(self, value):
        assert parse_severity(value) is AlertSeverity.LOW
    
    @pytest.mark.parametrize("value", [None, "", "spam"])
    def test_unknown_category_is_other(self, value):
        assert parse_category(value) is AlertCategory.OTHER
    
    def test_parse_is_case_insensitive(self):
        assert parse_severity(" Medium ") is AlertSeverity.MEDIUM
        assert parse_category("MALWARE") is AlertCategory.MALWARE
