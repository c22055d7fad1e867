"""
ThreatClassifier - Keyword based risk classification of extracted text

Text is matched against three lexicons (phishing, malware, financial), each
loaded from versioned JSON files by ConfigManager. Matching is case-insensitive
substring containment, the same way the routing keywords of the rest of the
project work; phrases are not tokenized.

Decision rules, first match wins:
    1. phishing >= 2, or phishing >= 1 with financial >= 1  -> high
    2. malware >= 1                                         -> medium
    3. financial >= 1 or phishing >= 1                      -> low
    4. otherwise                                            -> safe
"""
from typing import Dict, List
from LoggerSetup import setup_logger
from AnalysisResult import AnalysisResult, Threat, utc_timestamp
from RiskTypes import (
    LEXICON_CATEGORIES,
    LEXICON_FINANCIAL,
    LEXICON_MALWARE,
    LEXICON_PHISHING,
    THREAT_TYPE_PHISHING,
    THREAT_TYPE_SECURITY,
    THREAT_TYPE_SUSPICIOUS,
    RiskLevel,
)

_logger = setup_logger(__name__)

HIGH_CONFIDENCE = 0.85
MEDIUM_CONFIDENCE = 0.70
LOW_CONFIDENCE = 0.60
SAFE_CONFIDENCE = 0.95

DETAILS_LABEL = "Text extracted from the image:"

HIGH_RISK_RECOMMENDATIONS = [
    "Do not share personal or financial information",
    "Verify the authenticity of the website or sender",
    "Avoid clicking links shown in this image",
    "For financial matters, contact the institution through a verified channel",
]

MEDIUM_RISK_RECOMMENDATIONS = [
    "Do not download or install anything that is requested",
    "Check the extension of any file before opening it",
    "Keep your antivirus active and up to date",
    "Verify the sender before downloading anything",
]

LOW_RISK_RECOMMENDATIONS = [
    "Be careful with the information being requested",
    "Verify the sender's identity before responding",
    "Do not share personal or financial information without verification",
]

SAFE_RECOMMENDATIONS = [
    "Stay cautious with online content",
    "Always verify the sender or source of information",
]


class ThreatClassifier:
    """Maps extracted text to an AnalysisResult using keyword lexicons.

    Attributes:
        lexicons: Category name -> lower-cased keyword list
    """

    def __init__(self, lexicons: Dict[str, List[str]]):
        """Initialize with lexicons for every category in LEXICON_CATEGORIES.

        Raises:
            ValueError: If a category is missing
        """
        missing = [category for category in LEXICON_CATEGORIES if category not in lexicons]
        if missing:
            raise ValueError(f"Missing keyword lexicons: {', '.join(missing)}")

        # Deduplicate while keeping file order so reported matches are stable
        self.lexicons: Dict[str, List[str]] = {
            category: list(dict.fromkeys(kw.lower() for kw in lexicons[category] if kw))
            for category in LEXICON_CATEGORIES
        }
        _logger.info(
            "[ThreatClassifier] Loaded lexicons: "
            + ", ".join(f"{category}={len(self.lexicons[category])}" for category in LEXICON_CATEGORIES)
        )

    def match_keywords(self, text: str) -> Dict[str, List[str]]:
        """Return the keywords of each lexicon contained in text."""
        lower_text = (text or "").lower()
        matches = {
            category: [kw for kw in keywords if kw in lower_text]
            for category, keywords in self.lexicons.items()
        }
        for category, matched in matches.items():
            if matched:
                _logger.debug(f"[ThreatClassifier] {category} keywords found: {', '.join(matched)}")
        return matches

    def classify(self, text: str) -> AnalysisResult:
        """Classify extracted text.

        Args:
            text: Text extracted from a capture (sentinel strings included)

        Returns:
            AnalysisResult: Verdict with threats, recommendations, and the text in details
        """
        text = text or ""
        matches = self.match_keywords(text)
        phishing = matches[LEXICON_PHISHING]
        malware = matches[LEXICON_MALWARE]
        financial = matches[LEXICON_FINANCIAL]

        if len(phishing) >= 2 or (phishing and financial):
            risk_level = RiskLevel.HIGH
            confidence = HIGH_CONFIDENCE
            summary = "High phishing risk detected in the image."
            threats = [Threat(
                type=THREAT_TYPE_PHISHING,
                description=(
                    f"Detected {len(phishing)} phishing and {len(financial)} financial keyword(s): "
                    f"{', '.join(phishing + financial)}"
                ),
                confidence=confidence
            )]
            recommendations = HIGH_RISK_RECOMMENDATIONS
        elif malware:
            risk_level = RiskLevel.MEDIUM
            confidence = MEDIUM_CONFIDENCE
            summary = "Medium malware risk detected in the image."
            threats = [Threat(
                type=THREAT_TYPE_SECURITY,
                description=(
                    f"Detected {len(malware)} malware keyword(s): {', '.join(malware + phishing)}"
                ),
                confidence=confidence
            )]
            recommendations = MEDIUM_RISK_RECOMMENDATIONS
        elif financial or phishing:
            risk_level = RiskLevel.LOW
            confidence = LOW_CONFIDENCE
            summary = "Low risk detected in the image."
            threats = [Threat(
                type=THREAT_TYPE_SUSPICIOUS,
                description=(
                    f"Detected {len(financial) + len(phishing)} suspicious keyword(s): "
                    f"{', '.join(financial + phishing)}"
                ),
                confidence=confidence
            )]
            recommendations = LOW_RISK_RECOMMENDATIONS
        else:
            risk_level = RiskLevel.SAFE
            confidence = SAFE_CONFIDENCE
            summary = "No significant security risk detected in the extracted text."
            threats = []
            recommendations = SAFE_RECOMMENDATIONS

        _logger.info(
            f"[ThreatClassifier] Risk {risk_level.value} "
            f"(phishing={len(phishing)}, malware={len(malware)}, financial={len(financial)})"
        )
        return AnalysisResult(
            risk_level=risk_level,
            confidence_score=confidence,
            threats=threats,
            summary=summary,
            recommendations=list(recommendations),
            details=[DETAILS_LABEL, text],
            timestamp=utc_timestamp(),
            raw_analysis=text,
        )
