"""
Data models for storage layer.

Defines database entities and data structures.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional


@dataclass(frozen=True)
class Profile:
    """Subscription profile of a user, owned by the billing side."""
    user_id: str
    subscription_tier: str
    email: Optional[str] = None
    full_name: Optional[str] = None


@dataclass(frozen=True)
class ScanRecord:
    """Immutable record of a completed scan.
    
    risk_level and risk_score are stored exactly as the analysis engine
    produced them. Once written, these records must never be modified.
    """
    user_id: str
    scan_type: str
    content: str
    risk_level: str
    risk_score: int
    analysis: str
    created_at: datetime
    file_type: Optional[str] = None
    id: Optional[int] = None


@dataclass(frozen=True)
class QuotaRecord:
    """Committed scan count for one user on one calendar day."""
    user_id: str
    scan_date: date
    scan_count: int


@dataclass(frozen=True)
class AlertRecord:
    """Published security alert shown to every user."""
    title: str
    description: str
    category: str
    severity: str
    created_at: datetime
    id: Optional[int] = None
