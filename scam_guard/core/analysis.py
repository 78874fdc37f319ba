"""
Analysis engine contract.

The engine is an opaque classifier: it takes submitted content and
returns a risk level, a 0-100 risk score and a narrative. This module
defines those types and runs engines under a hard time bound.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol

from .errors import AnalysisTimeout, AnalysisUpstreamError, ScamGuardError, ValidationError

logger = logging.getLogger(__name__)


class RiskLevel(Enum):
    """Classification returned by the analysis engine."""
    SAFE = "safe"
    SUSPICIOUS = "suspicious"
    FRAUDULENT = "fraudulent"


class ScanKind(Enum):
    """Kind of content submitted for a scan."""
    TEXT = "text"
    FILE = "file"


# Media types accepted for file scans
SUPPORTED_MEDIA_TYPES = frozenset({
    "application/pdf",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "text/plain",
    "image/jpeg",
    "image/png",
    "video/mp4",
    "video/quicktime",
    "video/x-msvideo",
    "application/zip",
})


def risk_label(level: RiskLevel) -> str:
    """Human-readable label for a risk level."""
    return {
        RiskLevel.SAFE: "Safe",
        RiskLevel.SUSPICIOUS: "Suspicious",
        RiskLevel.FRAUDULENT: "Fraudulent",
    }[level]


@dataclass(frozen=True)
class ScanContent:
    """Content submitted for analysis.
    
    Text scans carry the text itself. File scans carry the file name and
    its declared media type.
    """
    kind: ScanKind
    value: str
    media_type: Optional[str] = None
    
    def __post_init__(self):
        """Reject empty submissions before they reach admission."""
        if not isinstance(self.kind, ScanKind):
            raise ValidationError(f"Unknown scan kind: {self.kind!r}")
        if not self.value or not self.value.strip():
            raise ValidationError(
                "Scan content is empty",
                user_message="Please provide text or upload a file to scan."
            )
        if self.kind == ScanKind.FILE and not self.media_type:
            raise ValidationError("File scans require a media type")
    
    @classmethod
    def text(cls, value: str) -> "ScanContent":
        return cls(kind=ScanKind.TEXT, value=value)
    
    @classmethod
    def file(cls, name: str, media_type: str) -> "ScanContent":
        return cls(kind=ScanKind.FILE, value=name, media_type=media_type)


@dataclass(frozen=True)
class ScanOutcome:
    """Successful classification. Level and score are produced together."""
    risk_level: RiskLevel
    risk_score: int
    analysis: str
    
    def __post_init__(self):
        """Enforce the engine's output contract."""
        if not isinstance(self.risk_level, RiskLevel):
            raise AnalysisUpstreamError(f"Engine returned invalid risk level: {self.risk_level!r}")
        if isinstance(self.risk_score, bool) or not isinstance(self.risk_score, int):
            raise AnalysisUpstreamError(f"Engine returned non-integer risk score: {self.risk_score!r}")
        if not 0 <= self.risk_score <= 100:
            raise AnalysisUpstreamError(f"Engine returned risk score out of range: {self.risk_score}")


class AnalysisEngine(Protocol):
    """Anything that can classify content.
    
    Implementations raise AnalysisTimeout, AnalysisUpstreamError or
    ValidationError on failure.
    """
    
    def classify(self, content: ScanContent) -> ScanOutcome:
        ...


def check_media_type(content: ScanContent) -> None:
    """Raise ValidationError if a file scan has an unsupported media type."""
    if content.kind == ScanKind.FILE and content.media_type not in SUPPORTED_MEDIA_TYPES:
        raise ValidationError(
            f"Unsupported media type: {content.media_type}",
            user_message="This file type is not supported. Please upload a PDF, DOCX, text, image, video or ZIP file."
        )


def classify_with_timeout(engine: AnalysisEngine, content: ScanContent, timeout: float) -> ScanOutcome:
    """Run engine.classify, giving up after timeout seconds.
    
    The caller is released as soon as the bound expires; a late engine
    result is discarded. Unexpected engine exceptions are reported as
    upstream errors.
    
    Args:
        engine: Analysis engine to call
        content: Content to classify
        timeout: Hard limit in seconds
        
    Returns:
        The engine's outcome
        
    Raises:
        AnalysisTimeout: If the engine did not finish in time
        AnalysisUpstreamError: If the engine failed unexpectedly
        ValidationError: If the engine rejected the content
    """
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="scan-analysis")
    try:
        future = executor.submit(engine.classify, content)
        try:
            outcome = future.result(timeout=timeout)
        except FutureTimeoutError:
            future.cancel()
            raise AnalysisTimeout(f"Analysis did not complete within {timeout}s")
        except ScamGuardError:
            raise
        except Exception as e:
            logger.exception("Analysis engine raised unexpectedly")
            raise AnalysisUpstreamError(f"Analysis engine failed: {e}") from e
        if not isinstance(outcome, ScanOutcome):
            raise AnalysisUpstreamError(f"Analysis engine returned {type(outcome).__name__}, not a ScanOutcome")
        return outcome
    finally:
        executor.shutdown(wait=False)
