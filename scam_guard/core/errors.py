"""
Error taxonomy for scan admission and escalation.

Every error carries a user_message that can be shown as-is. Errors the
user can fix by trying again are marked retryable.
"""

from typing import Optional


class ScamGuardError(Exception):
    """Base class for all domain errors."""
    user_message = "Failed to scan content. Please try again."
    retryable = False
    
    def __init__(self, message: str, user_message: Optional[str] = None):
        super().__init__(message)
        if user_message is not None:
            self.user_message = user_message


class AuthenticationRequired(ScamGuardError):
    """Raised when an operation is attempted without a user identity."""
    user_message = "Please sign in to continue."


class QuotaExceeded(ScamGuardError):
    """Raised when a free-tier user has used up the day's scans.
    
    This is an expected outcome and is shown as an upgrade prompt.
    """
    
    def __init__(self, current_count: int, limit: int):
        super().__init__(
            f"Daily scan limit reached ({current_count}/{limit})",
            user_message=(
                f"You've used all {limit} free scans for today. "
                "Upgrade to Premium for unlimited scans."
            )
        )
        self.current_count = current_count
        self.limit = limit


class AnalysisTimeout(ScamGuardError):
    """The analysis engine did not answer within its time bound."""
    user_message = "Scan timed out. Please try again."
    retryable = True


class AnalysisUpstreamError(ScamGuardError):
    """The analysis engine failed or returned an unusable response."""
    user_message = "The analysis service failed. Please try again in a moment."
    retryable = True


class ValidationError(ScamGuardError):
    """Submitted content is empty, malformed or of an unsupported type."""
    user_message = "Invalid content provided. Please check your input."
    retryable = True


class StorageFault(ScamGuardError):
    """Persistent storage failed; the submission is reported as failed."""
    user_message = "We couldn't save your scan. Please try again later."


class NotificationDeliveryFailure(ScamGuardError):
    """The emergency channel could not be reached. Advisory only."""
    user_message = "Failed to send SOS alert. Please contact authorities directly."
