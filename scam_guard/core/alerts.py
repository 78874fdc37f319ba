"""
Security alerts feed.

Published alerts carry a category and a severity. Stored values outside
the known sets read as OTHER and LOW.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import List, Optional

from scam_guard.storage.models import AlertRecord
from scam_guard.storage.repository import fetch_recent_alerts

logger = logging.getLogger(__name__)


class AlertSeverity(Enum):
    """How urgent an alert is."""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class AlertCategory(Enum):
    """What kind of threat an alert describes."""
    PHISHING = "phishing"
    FRAUD = "fraud"
    MALWARE = "malware"
    OTHER = "other"


def severity_rank(severity: AlertSeverity) -> int:
    """Sort key, higher is more urgent."""
    return {
        AlertSeverity.CRITICAL: 4,
        AlertSeverity.HIGH: 3,
        AlertSeverity.MEDIUM: 2,
        AlertSeverity.LOW: 1,
    }[severity]


def category_label(category: AlertCategory) -> str:
    """Human-readable label for an alert category."""
    return {
        AlertCategory.PHISHING: "Phishing",
        AlertCategory.FRAUD: "Fraud",
        AlertCategory.MALWARE: "Malware",
        AlertCategory.OTHER: "Other",
    }[category]


def is_scam_category(category: AlertCategory) -> bool:
    """Whether the category describes a scam aimed at the user directly."""
    return {
        AlertCategory.PHISHING: True,
        AlertCategory.FRAUD: True,
        AlertCategory.MALWARE: False,
        AlertCategory.OTHER: False,
    }[category]


def parse_severity(value: Optional[str]) -> AlertSeverity:
    try:
        return AlertSeverity((value or "").strip().lower())
    except ValueError:
        logger.debug("Unknown alert severity %r, treating as low", value)
        return AlertSeverity.LOW


def parse_category(value: Optional[str]) -> AlertCategory:
    try:
        return AlertCategory((value or "").strip().lower())
    except ValueError:
        logger.debug("Unknown alert category %r, treating as other", value)
        return AlertCategory.OTHER


@dataclass(frozen=True)
class SecurityAlert:
    """Alert with its category and severity resolved to enums."""
    id: int
    title: str
    description: str
    category: AlertCategory
    severity: AlertSeverity
    created_at: datetime


def to_security_alert(record: AlertRecord) -> SecurityAlert:
    return SecurityAlert(
        id=record.id,
        title=record.title,
        description=record.description,
        category=parse_category(record.category),
        severity=parse_severity(record.severity),
        created_at=record.created_at
    )


def list_alerts(limit: Optional[int] = None, db_path: str = "scam_guard.db") -> List[SecurityAlert]:
    """Published alerts, newest first.
    
    Args:
        limit: Optional maximum number of alerts to return
        db_path: Path to SQLite database file
        
    Returns:
        Typed alerts ordered by creation time (newest first)
    """
    return [to_security_alert(record) for record in fetch_recent_alerts(limit, db_path)]
