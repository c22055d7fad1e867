"""
ResponseParser - Turns free-form vision-model text into an AnalysisResult

Remote analyzers are asked to answer in a loose structure:

    1. RISK: high/medium/low/safe        (or RISIKO: tinggi/sedang/rendah/aman)
    2. THREATS: list of detected threats
    3. SUMMARY: short summary             (or RINGKASAN)
    4. RECOMMENDATIONS: advice for users  (or REKOMENDASI)

Models do not always comply, so SectionResponseParser is tolerant: explicit
risk labels win over risk keywords found anywhere in the text, missing
sections fall back to suspicious sentences or per-level default advice, and
the raw text is always kept in raw_analysis.
"""
import re
from abc import ABC as AbstractBaseClass, abstractmethod
from typing import List, Optional, Tuple
from AnalysisResult import AnalysisResult, Threat, utc_timestamp
from RiskTypes import THREAT_TYPE_SECURITY, RiskLevel


class ResponseParser(AbstractBaseClass):
    """Interface for converting remote analysis text into an AnalysisResult."""

    @abstractmethod
    def parse(self, content: str) -> AnalysisResult:
        pass


class SectionResponseParser(ResponseParser):
    """Keyword and section heuristics over unstructured model output."""

    HIGH_RISK_KEYWORDS = [
        'risiko tinggi', 'high risk', 'berbahaya', 'phishing', 'penipuan', 'malware', 'scam',
        'virus', 'trojan', 'ransomware', 'pencurian data', 'jangan', 'data breach',
    ]
    MEDIUM_RISK_KEYWORDS = [
        'risiko sedang', 'medium risk', 'mencurigakan', 'suspicious', 'waspada',
        'hati-hati', 'verifikasi', 'tidak aman', 'peringatan', 'warning',
    ]
    LOW_RISK_KEYWORDS = ['risiko rendah', 'low risk', 'potensi', 'potential', 'kemungkinan', 'mungkin']

    _EXPLICIT_LABELS = [
        (RiskLevel.HIGH, re.compile(r'(?:risiko|risk):?\s*(?:tinggi|high)', re.IGNORECASE)),
        (RiskLevel.MEDIUM, re.compile(r'(?:risiko|risk):?\s*(?:sedang|medium)', re.IGNORECASE)),
        (RiskLevel.LOW, re.compile(r'(?:risiko|risk):?\s*(?:rendah|low)', re.IGNORECASE)),
        (RiskLevel.SAFE, re.compile(r'(?:risiko|risk):?\s*(?:aman|safe)', re.IGNORECASE)),
    ]

    _SUMMARY = re.compile(r'(?:summary|ringkasan):?\s*(.*?)(?:\n|$)', re.IGNORECASE)
    _THREATS = re.compile(r'threats:?\s*([\s\S]*?)(?=recommendations|rekomendasi|summary|ringkasan|$)', re.IGNORECASE)
    _RECOMMENDATIONS = re.compile(
        r'(?:recommendations|rekomendasi):?\s*([\s\S]*?)(?=threats|summary|ringkasan|$)', re.IGNORECASE
    )
    _LIST_SPLIT = re.compile(r'\n|^\s*[-*]\s*|\s[-*]\s', re.MULTILINE)
    _SENTENCE_SPLIT = re.compile(r'[.!?]+')
    _NUMBERING = re.compile(r'^\d+[.)]\s*$')

    DEFAULT_RECOMMENDATIONS = {
        RiskLevel.HIGH: [
            "Close this page or application immediately",
            "Do not enter personal or financial information",
            "Report it to the authorities or your IT team",
            "Scan your device with an antivirus",
        ],
        RiskLevel.MEDIUM: [
            "Verify the source or sender before continuing",
            "Check the URL and its security certificate",
            "Avoid entering personal information",
            "Use browser security features such as phishing protection",
        ],
        RiskLevel.LOW: [
            "Be careful with the information you share",
            "Verify the source of the information",
            "Consider the risks before continuing",
        ],
    }
    FALLBACK_RECOMMENDATIONS = ["Continue with normal precautions"]
    NO_RECOMMENDATIONS = ["No specific recommendations."]

    def parse(self, content: str) -> AnalysisResult:
        content = content or ""
        risk_level, confidence = self.detect_risk(content)
        threats = self.extract_threats(content, risk_level, confidence)
        recommendations = self.extract_recommendations(content, risk_level)
        return AnalysisResult(
            risk_level=risk_level,
            confidence_score=confidence,
            threats=threats,
            summary=self.extract_summary(content),
            recommendations=recommendations or list(self.NO_RECOMMENDATIONS),
            timestamp=utc_timestamp(),
            raw_analysis=content,
        )

    def _has_keyword(self, text: str, keywords: List[str]) -> bool:
        lower = text.lower()
        return any(keyword in lower for keyword in keywords)

    def detect_risk(self, content: str) -> Tuple[RiskLevel, float]:
        """Risk level and confidence; explicit labels take priority over keywords."""
        explicit = {level for level, pattern in self._EXPLICIT_LABELS if pattern.search(content)}
        has_high = self._has_keyword(content, self.HIGH_RISK_KEYWORDS)
        has_medium = self._has_keyword(content, self.MEDIUM_RISK_KEYWORDS)
        has_low = self._has_keyword(content, self.LOW_RISK_KEYWORDS)

        if RiskLevel.HIGH in explicit or (not explicit and has_high):
            return RiskLevel.HIGH, 0.9
        if RiskLevel.MEDIUM in explicit or (not (explicit - {RiskLevel.MEDIUM}) and has_medium):
            return RiskLevel.MEDIUM, 0.75
        if RiskLevel.LOW in explicit or (RiskLevel.SAFE not in explicit and has_low):
            return RiskLevel.LOW, 0.6
        # Only an explicit safe label or no risk keyword at all gets here
        return RiskLevel.SAFE, 0.85

    def extract_summary(self, content: str) -> str:
        match = self._SUMMARY.search(content)
        if match and match.group(1).strip():
            return match.group(1).strip()
        first_line = content.strip().split('\n')[0].strip()
        return first_line or "Analysis complete."

    def _split_items(self, section: str) -> List[str]:
        items = [item.strip() for item in self._LIST_SPLIT.split(section)]
        return [item for item in items if item and not self._NUMBERING.match(item)]

    def extract_threats(self, content: str, risk_level: RiskLevel, confidence: float) -> List[Threat]:
        section = self._section(self._THREATS, content)
        if section is not None:
            return [Threat(type=THREAT_TYPE_SECURITY, description=item, confidence=confidence)
                    for item in self._split_items(section)]

        if risk_level == RiskLevel.SAFE:
            return []
        sentences = [s.strip() for s in self._SENTENCE_SPLIT.split(content) if s.strip()]
        suspicious = [
            s for s in sentences
            if self._has_keyword(s, self.HIGH_RISK_KEYWORDS) or self._has_keyword(s, self.MEDIUM_RISK_KEYWORDS)
        ]
        return [Threat(type=THREAT_TYPE_SECURITY, description=s, confidence=round(confidence * 0.9, 3))
                for s in suspicious]

    def extract_recommendations(self, content: str, risk_level: RiskLevel) -> List[str]:
        section = self._section(self._RECOMMENDATIONS, content)
        if section is not None:
            return self._split_items(section)
        return list(self.DEFAULT_RECOMMENDATIONS.get(risk_level, self.FALLBACK_RECOMMENDATIONS))

    @staticmethod
    def _section(pattern: re.Pattern, content: str) -> Optional[str]:
        match = pattern.search(content)
        if match and match.group(1).strip():
            return match.group(1)
        return None
