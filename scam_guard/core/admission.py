"""
Scan admission control.

Orchestrates a single scan submission through these states:

    SUBMITTED -> TIER_RESOLVED -> (QUOTA_RESERVED | QUOTA_BYPASSED)
              -> ANALYZING -> COMPLETED | FAILED

Ordering guarantees:
1. Quota is reserved before the analysis engine is called, so a denied
   user never incurs analysis cost
2. A reservation is kept even if analysis then fails
3. A scan record is written only for a successful analysis; if that write
   fails the whole submission fails
"""

import logging
import sqlite3
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Iterator, Optional

from .analysis import AnalysisEngine, ScanContent, ScanOutcome, check_media_type, classify_with_timeout
from .errors import AuthenticationRequired, QuotaExceeded, ScamGuardError, StorageFault
from .quota import DEFAULT_DAILY_LIMIT, Allowed, QuotaLedger, current_scan_date
from .tiers import SubscriptionTier, is_metered, resolve_tier
from scam_guard.storage.models import ScanRecord
from scam_guard.storage.repository import ScanRepository

logger = logging.getLogger(__name__)


class ScanState(Enum):
    """States of a scan submission."""
    SUBMITTED = "submitted"
    TIER_RESOLVED = "tier_resolved"
    QUOTA_RESERVED = "quota_reserved"
    QUOTA_BYPASSED = "quota_bypassed"
    ANALYZING = "analyzing"
    COMPLETED = "completed"
    FAILED = "failed"
    
    @property
    def is_terminal(self) -> bool:
        return self in (ScanState.COMPLETED, ScanState.FAILED)


# Progress percentage reported on entering each state
_PROGRESS = {
    ScanState.SUBMITTED: 0,
    ScanState.TIER_RESOLVED: 10,
    ScanState.QUOTA_RESERVED: 20,
    ScanState.QUOTA_BYPASSED: 20,
    ScanState.ANALYZING: 30,
    ScanState.COMPLETED: 100,
    ScanState.FAILED: 100,
}


@dataclass(frozen=True)
class CompletedScan:
    """Result of a completed submission."""
    outcome: ScanOutcome
    record_id: int
    tier: SubscriptionTier
    scans_used_today: Optional[int] = None


@dataclass(frozen=True)
class ProgressEvent:
    """One step of a submission. The last event of a stream is terminal."""
    state: ScanState
    progress: int
    result: Optional[CompletedScan] = None
    error: Optional[ScamGuardError] = None


class ScanAdmissionController:
    """Admits scans against tier and quota, runs analysis, stores results.
    
    Identity is passed to every call; the controller holds no per-user state
    and can serve concurrent submissions.
    """
    
    def __init__(
        self,
        engine: AnalysisEngine,
        db_path: str = "scam_guard.db",
        daily_limit: int = DEFAULT_DAILY_LIMIT,
        tz_name: str = "UTC",
        analysis_timeout: float = 30.0,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc)
    ):
        """Initialize the controller.
        
        Args:
            engine: Analysis engine used for classification
            db_path: Path to SQLite database file
            daily_limit: Scans per day allowed on metered tiers
            tz_name: Timezone whose calendar day keys the quota
            analysis_timeout: Hard limit in seconds for one analysis
            clock: Source of the current time
        """
        self.engine = engine
        self.db_path = db_path
        self.daily_limit = daily_limit
        self.tz_name = tz_name
        self.analysis_timeout = analysis_timeout
        self.clock = clock
        self.ledger = QuotaLedger(db_path)
        self.scans = ScanRepository(db_path)
    
    def stream(self, user_id: Optional[str], content: ScanContent) -> Iterator[ProgressEvent]:
        """Run a submission, yielding an event on every state change.
        
        The stream is finite and always ends with a COMPLETED or FAILED
        event; failures are reported in the event rather than raised.
        
        Args:
            user_id: Identity of the submitting user
            content: Validated content to scan
            
        Yields:
            ProgressEvent per state, in order
        """
        yield self._event(ScanState.SUBMITTED)
        
        if not user_id:
            yield self._failed(AuthenticationRequired("Scan submitted without a user identity"))
            return
        
        try:
            tier = resolve_tier(user_id, self.db_path)
        except sqlite3.Error as e:
            yield self._failed(StorageFault(f"Tier lookup failed: {e}"))
            return
        yield self._event(ScanState.TIER_RESOLVED)
        
        scans_used = None
        if is_metered(tier):
            scan_date = current_scan_date(self.tz_name, self.clock())
            try:
                reservation = self.ledger.try_reserve(user_id, scan_date, self.daily_limit)
            except StorageFault as e:
                yield self._failed(e)
                return
            if not isinstance(reservation, Allowed):
                yield self._failed(QuotaExceeded(reservation.current_count, self.daily_limit))
                return
            scans_used = reservation.new_count
            yield self._event(ScanState.QUOTA_RESERVED)
        else:
            yield self._event(ScanState.QUOTA_BYPASSED)
        
        yield self._event(ScanState.ANALYZING)
        try:
            check_media_type(content)
            outcome = classify_with_timeout(self.engine, content, self.analysis_timeout)
        except ScamGuardError as e:
            logger.warning("Analysis failed for %s: %s", user_id, e)
            yield self._failed(e)
            return
        
        record = ScanRecord(
            user_id=user_id,
            scan_type=content.kind.value,
            content=content.value,
            file_type=content.media_type,
            risk_level=outcome.risk_level.value,
            risk_score=outcome.risk_score,
            analysis=outcome.analysis,
            created_at=self.clock()
        )
        try:
            record_id = self.scans.append(record)
        except sqlite3.Error as e:
            logger.error("Failed to store scan for %s after successful analysis: %s", user_id, e)
            yield self._failed(StorageFault(f"Scan record write failed: {e}"))
            return
        
        logger.info(
            "Scan %d completed for %s: %s (%d)",
            record_id, user_id, outcome.risk_level.value, outcome.risk_score
        )
        yield ProgressEvent(
            state=ScanState.COMPLETED,
            progress=_PROGRESS[ScanState.COMPLETED],
            result=CompletedScan(
                outcome=outcome,
                record_id=record_id,
                tier=tier,
                scans_used_today=scans_used
            )
        )
    
    def submit(self, user_id: Optional[str], content: ScanContent) -> CompletedScan:
        """Run a submission to completion.
        
        Args:
            user_id: Identity of the submitting user
            content: Validated content to scan
            
        Returns:
            The completed scan
            
        Raises:
            ScamGuardError: The failure that ended the submission
        """
        last = None
        for last in self.stream(user_id, content):
            pass
        if last.error is not None:
            raise last.error
        return last.result
    
    def _event(self, state: ScanState) -> ProgressEvent:
        return ProgressEvent(state=state, progress=_PROGRESS[state])
    
    def _failed(self, error: ScamGuardError) -> ProgressEvent:
        return ProgressEvent(state=ScanState.FAILED, progress=_PROGRESS[ScanState.FAILED], error=error)
