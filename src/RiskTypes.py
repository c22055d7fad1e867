"""
Risk level, threat type and sentinel constants shared by the scanning pipeline.
"""
from enum import Enum


class RiskLevel(Enum):
    """Risk verdict attached to every analysis.

    Attributes:
        SAFE: No lexicon keyword matched
        LOW: A single financial or phishing indicator
        MEDIUM: Malware or unsafe-software indicators
        HIGH: Several phishing indicators, or phishing combined with financial ones
        UNKNOWN: Verdict could not be determined (remote responses only)
    """
    SAFE = "safe"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    UNKNOWN = "unknown"


THREAT_TYPE_PHISHING = 'phishing'
THREAT_TYPE_SECURITY = 'security'
THREAT_TYPE_SUSPICIOUS = 'suspicious-content'

LEXICON_PHISHING = 'phishing'
LEXICON_MALWARE = 'malware'
LEXICON_FINANCIAL = 'financial'
LEXICON_CATEGORIES = (LEXICON_PHISHING, LEXICON_MALWARE, LEXICON_FINANCIAL)

# Returned through the normal success path, never raised
NO_TEXT_DETECTED = "No text detected in the image."
LOW_CONFIDENCE_TEXT = "Could not recognize text with sufficient confidence."

OCR_SUMMARY_PREFIX = "[OCR Analysis]"
