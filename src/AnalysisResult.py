"""
AnalysisResult - Structured outcome of one capture analysis

Threat and AnalysisResult are frozen dataclasses: the classifier (or the remote
response parser) creates them once and every later consumer, including the
analysis cache, hands out the same object. Sequence fields are stored as tuples
so no consumer can change what the next one sees. to_dict() renders the camelCase
structure the UI shell stores in its history.
"""
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple
from RiskTypes import RiskLevel


def utc_timestamp() -> str:
    """Current time as an ISO-8601 UTC string."""
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class Threat:
    """One detected threat.

    Attributes:
        type: Category tag (phishing, security, suspicious-content)
        description: Human readable description including matched keywords
        confidence: Confidence between 0 and 1
    """
    type: str
    description: str
    confidence: float

    def to_dict(self) -> Dict[str, Any]:
        return {'type': self.type, 'description': self.description, 'confidence': self.confidence}


@dataclass(frozen=True)
class AnalysisResult:
    """Final output of the scanning pipeline.

    Attributes:
        risk_level: Verdict, see RiskLevel
        confidence_score: Confidence of the verdict between 0 and 1
        threats: Detected threats (possibly empty)
        summary: One line verdict summary
        recommendations: Advice shown to the user
        details: Diagnostic lines, e.g. the raw extracted text
        timestamp: ISO-8601 creation time
        raw_analysis: Unparsed source text kept for debugging
    """
    risk_level: RiskLevel
    confidence_score: float
    summary: str
    threats: Tuple[Threat, ...] = ()
    recommendations: Tuple[str, ...] = ()
    details: Optional[Tuple[str, ...]] = None
    timestamp: str = field(default_factory=utc_timestamp)
    raw_analysis: Optional[str] = None

    def __post_init__(self):
        # Cached results are shared between callers, so sequences are stored as tuples
        object.__setattr__(self, "threats", tuple(self.threats))
        object.__setattr__(self, "recommendations", tuple(self.recommendations))
        if self.details is not None:
            object.__setattr__(self, "details", tuple(self.details))

    def with_summary_prefix(self, prefix: str) -> 'AnalysisResult':
        """Return a copy whose summary is marked with a provenance prefix."""
        return replace(self, summary=f"{prefix} {self.summary}")

    def to_dict(self) -> Dict[str, Any]:
        """Render the shell-facing structure, omitting unset optional fields."""
        data: Dict[str, Any] = {
            'riskLevel': self.risk_level.value,
            'confidenceScore': self.confidence_score,
            'threats': [threat.to_dict() for threat in self.threats],
            'summary': self.summary,
            'recommendations': list(self.recommendations),
            'timestamp': self.timestamp,
        }
        if self.details is not None:
            data['details'] = list(self.details)
        if self.raw_analysis is not None:
            data['rawAnalysis'] = self.raw_analysis
        return data
