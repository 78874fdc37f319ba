"""
Scan statistics for dashboards and reports.
"""

from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .analysis import RiskLevel
from scam_guard.storage.models import Profile, ScanRecord


@dataclass
class ScanStats:
    """Counts of a user's scans by risk level and by month."""
    total_scans: int = 0
    safe_count: int = 0
    suspicious_count: int = 0
    fraudulent_count: int = 0
    monthly: Dict[str, int] = field(default_factory=dict)


def compute_scan_stats(records: List[ScanRecord]) -> ScanStats:
    """Aggregate scan records.
    
    Monthly keys are "YYYY-MM" in ascending order. Records with a risk
    level outside the known set still count toward the total.
    
    Args:
        records: Scans of a single user
        
    Returns:
        ScanStats for the records
    """
    levels = Counter(record.risk_level for record in records)
    months = Counter(record.created_at.strftime("%Y-%m") for record in records)
    return ScanStats(
        total_scans=len(records),
        safe_count=levels[RiskLevel.SAFE.value],
        suspicious_count=levels[RiskLevel.SUSPICIOUS.value],
        fraudulent_count=levels[RiskLevel.FRAUDULENT.value],
        monthly=dict(sorted(months.items()))
    )


def display_name(profile: Optional[Profile]) -> str:
    """Name to greet a user by: full name, then email local part, then "User"."""
    if profile is None:
        return "User"
    if profile.full_name:
        return profile.full_name
    if profile.email:
        return profile.email.split("@")[0]
    return "User"
