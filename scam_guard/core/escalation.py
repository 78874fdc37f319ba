"""
Emergency escalation.

On explicit user confirmation, builds an alert from the user's identity,
a best-effort location, their latest scan and the current time, and
relays it to an external notification channel. Every confirmation sends
a new alert; failed deliveries are not retried.
"""

import logging
import sqlite3
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Dict, Optional, Protocol, Tuple

from .errors import AuthenticationRequired, NotificationDeliveryFailure
from scam_guard.storage.models import ScanRecord
from scam_guard.storage.repository import ScanRepository, get_profile

logger = logging.getLogger(__name__)

LOCATION_UNAVAILABLE = "Location unavailable"
NO_RECENT_SCANS = "No recent scans available"
DEFAULT_SUMMARY_LENGTH = 200

SENT_MESSAGE = "SOS Alert Sent! Emergency services have been notified."

# Returns (latitude, longitude); raises when access is denied
LocationProvider = Callable[[], Tuple[float, float]]


class EscalationState(Enum):
    """States of an escalation."""
    IDLE = "idle"
    CONFIRMED = "confirmed"
    DISPATCHING = "dispatching"
    SENT = "sent"
    FAILED = "failed"


@dataclass(frozen=True)
class LocationResult:
    """Outcome of a best-effort location lookup."""
    value: str
    available: bool


@dataclass(frozen=True)
class EscalationEvent:
    """Alert context assembled for a single escalation."""
    user_name: str
    location: str
    scam_details: str
    timestamp: datetime
    
    def to_payload(self) -> Dict[str, str]:
        return {
            "userName": self.user_name,
            "location": self.location,
            "scamDetails": self.scam_details,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class EscalationResult:
    """Terminal state of an escalation and the message to show the user.
    
    trail lists every state the escalation passed through, ending with state.
    """
    state: EscalationState
    message: str
    event: Optional[EscalationEvent] = None
    trail: Tuple[EscalationState, ...] = ()
    
    @property
    def sent(self) -> bool:
        return self.state == EscalationState.SENT


class NotificationChannel(Protocol):
    """External channel that delivers alerts.
    
    Implementations raise NotificationDeliveryFailure when delivery fails.
    """
    
    def send(self, payload: Dict[str, str]) -> None:
        ...


def acquire_location(provider: Optional[LocationProvider], timeout: float) -> LocationResult:
    """Ask provider for coordinates, waiting at most timeout seconds.
    
    Denial, errors, a missing provider and timeouts all give the
    "Location unavailable" fallback.
    """
    if provider is None:
        return LocationResult(value=LOCATION_UNAVAILABLE, available=False)
    
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="sos-location")
    try:
        future = executor.submit(provider)
        try:
            latitude, longitude = future.result(timeout=timeout)
        except FutureTimeoutError:
            logger.info("Location lookup timed out after %ss", timeout)
            return LocationResult(value=LOCATION_UNAVAILABLE, available=False)
        except Exception as e:
            logger.info("Location access denied: %s", e)
            return LocationResult(value=LOCATION_UNAVAILABLE, available=False)
        return LocationResult(value=f"Lat: {latitude}, Lng: {longitude}", available=True)
    finally:
        executor.shutdown(wait=False)


def summarize_scan(record: Optional[ScanRecord], length: int = DEFAULT_SUMMARY_LENGTH) -> str:
    """Compact one-line description of a scan for an alert."""
    if record is None:
        return NO_RECENT_SCANS
    analysis = (record.analysis or "")[:length]
    return f"Risk Level: {record.risk_level}, Analysis: {analysis}..."


class EscalationDispatcher:
    """Sends user-confirmed emergency alerts."""
    
    def __init__(
        self,
        channel: NotificationChannel,
        db_path: str = "scam_guard.db",
        location_timeout: float = 5.0,
        summary_length: int = DEFAULT_SUMMARY_LENGTH,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc)
    ):
        """Initialize the dispatcher.
        
        Args:
            channel: Channel alerts are relayed to
            db_path: Path to SQLite database file
            location_timeout: Seconds to wait for a location fix
            summary_length: Characters of scan analysis included in an alert
            clock: Source of the alert timestamp
        """
        self.channel = channel
        self.db_path = db_path
        self.location_timeout = location_timeout
        self.summary_length = summary_length
        self.clock = clock
        self.scans = ScanRepository(db_path)
    
    def dispatch(
        self,
        user_id: Optional[str],
        confirmed: bool,
        location_provider: Optional[LocationProvider] = None
    ) -> EscalationResult:
        """Escalate for a user once they have confirmed.
        
        Args:
            user_id: Identity of the user raising the alert
            confirmed: Whether the user explicitly confirmed
            location_provider: Optional source of the user's coordinates
            
        Returns:
            EscalationResult in IDLE (not confirmed), SENT or FAILED state
            
        Raises:
            AuthenticationRequired: If no user identity is given
        """
        if not user_id:
            raise AuthenticationRequired(
                "Escalation requested without a user identity",
                user_message="Please log in to send SOS alert."
            )
        if not confirmed:
            return EscalationResult(
                state=EscalationState.IDLE,
                message="SOS alert not confirmed.",
                trail=(EscalationState.IDLE,)
            )
        
        trail = [EscalationState.IDLE, EscalationState.CONFIRMED]
        logger.warning("SOS escalation confirmed by %s", user_id)
        location = acquire_location(location_provider, self.location_timeout)
        event = EscalationEvent(
            user_name=self._user_name(user_id),
            location=location.value,
            scam_details=summarize_scan(self._latest_scan(user_id), self.summary_length),
            timestamp=self.clock()
        )
        
        trail.append(EscalationState.DISPATCHING)
        try:
            self.channel.send(event.to_payload())
        except NotificationDeliveryFailure as e:
            logger.error("SOS alert for %s was not delivered: %s", user_id, e)
            return self._finish(EscalationState.FAILED, e.user_message, event, trail)
        except Exception:
            logger.exception("SOS alert channel failed unexpectedly for %s", user_id)
            return self._finish(
                EscalationState.FAILED, NotificationDeliveryFailure.user_message, event, trail
            )
        
        logger.info("SOS alert for %s delivered", user_id)
        return self._finish(EscalationState.SENT, SENT_MESSAGE, event, trail)
    
    def _finish(self, state, message, event, trail) -> EscalationResult:
        return EscalationResult(
            state=state,
            message=message,
            event=event,
            trail=tuple(trail) + (state,)
        )
    
    def _latest_scan(self, user_id: str) -> Optional[ScanRecord]:
        try:
            return self.scans.latest_for_user(user_id)
        except sqlite3.Error as e:
            # The alert still goes out without scan context
            logger.error("Could not read latest scan for %s: %s", user_id, e)
            return None
    
    def _user_name(self, user_id: str) -> str:
        try:
            profile = get_profile(user_id, self.db_path)
        except sqlite3.Error as e:
            logger.error("Could not read profile for %s: %s", user_id, e)
            return user_id
        if profile is None:
            return user_id
        return profile.email or profile.full_name or user_id
