"""
OpenAI-backed analysis engine.

Classifies submitted content as safe, suspicious or fraudulent.
"""

import json
import logging
from typing import Any, Dict, List, Optional

import openai
from openai import OpenAI

from ..core.analysis import RiskLevel, ScanContent, ScanKind, ScanOutcome, check_media_type
from ..core.errors import AnalysisTimeout, AnalysisUpstreamError

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a fraud analyst. Assess the submitted content for scams, phishing, "
    "impersonation and other fraud. Reply with a JSON object with exactly these keys: "
    '"risk_level" (one of "safe", "suspicious", "fraudulent"), '
    '"risk_score" (integer 0-100, higher is riskier) and '
    '"analysis" (a short explanation for a non-technical reader).'
)


class OpenAIScanEngine:
    """Analysis engine that asks an OpenAI chat model for a verdict.
    
    The client is created without retries and with a request timeout, so
    a single classify call is bounded.
    """
    
    def __init__(self, model: str, timeout: float = 30.0, client: Optional[Any] = None):
        """Initialize the engine.
        
        Args:
            model: OpenAI model name (required)
            timeout: Request timeout in seconds
            client: Optional preconfigured OpenAI client
            
        Raises:
            ValueError: If model is missing/empty, timeout is not positive or
                no OpenAI credentials are configured
        """
        if not model or not model.strip():
            raise ValueError("model is required and cannot be empty")
        if timeout <= 0:
            raise ValueError("timeout must be > 0")
        
        self.model = model
        self.timeout = timeout
        if client is None:
            try:
                client = OpenAI(timeout=timeout, max_retries=0)
            except openai.OpenAIError as e:
                raise ValueError(f"OpenAI client is not configured: {e}") from e
        self.client = client
    
    def classify(self, content: ScanContent) -> ScanOutcome:
        """Classify content with the model.
        
        Args:
            content: Content to classify
            
        Returns:
            ScanOutcome parsed from the model's JSON reply
            
        Raises:
            ValidationError: If the file's media type is unsupported
            AnalysisTimeout: If the request timed out
            AnalysisUpstreamError: If the API failed or the reply is unusable
        """
        check_media_type(content)
        
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=self._build_messages(content),
                temperature=0,
                response_format={"type": "json_object"},
            )
        except openai.APITimeoutError as e:
            raise AnalysisTimeout(f"OpenAI request timed out: {e}") from e
        except openai.RateLimitError as e:
            raise AnalysisUpstreamError(
                f"OpenAI rate limit hit: {e}",
                user_message="Too many requests. Please wait a moment and try again."
            ) from e
        except openai.APIError as e:
            raise AnalysisUpstreamError(f"OpenAI request failed: {e}") from e
        
        if not response.choices:
            raise AnalysisUpstreamError("OpenAI response has no choices")
        return parse_verdict(response.choices[0].message.content)
    
    def _build_messages(self, content: ScanContent) -> List[Dict[str, str]]:
        if content.kind == ScanKind.FILE:
            body = f"File name: {content.value}\nFile type: {content.media_type}"
        else:
            body = content.value
        return [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": body},
        ]


def parse_verdict(raw: Optional[str]) -> ScanOutcome:
    """Parse the model's JSON reply into a ScanOutcome.
    
    Raises:
        AnalysisUpstreamError: If the reply is not valid JSON or breaks the
            output contract
    """
    if not raw:
        raise AnalysisUpstreamError("OpenAI response is empty")
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise AnalysisUpstreamError(f"OpenAI response is not JSON: {e}") from e
    if not isinstance(data, dict):
        raise AnalysisUpstreamError("OpenAI response is not a JSON object")
    
    missing = {"risk_level", "risk_score", "analysis"} - set(data)
    if missing:
        raise AnalysisUpstreamError(f"OpenAI response missing keys: {sorted(missing)}")
    
    try:
        level = RiskLevel(str(data["risk_level"]).lower())
    except ValueError:
        raise AnalysisUpstreamError(f"OpenAI returned unknown risk level: {data['risk_level']!r}")
    
    score = data["risk_score"]
    if isinstance(score, float) and score.is_integer():
        score = int(score)
    
    return ScanOutcome(risk_level=level, risk_score=score, analysis=str(data["analysis"]))
