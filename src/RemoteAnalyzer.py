"""
RemoteAnalyzer - Boundary for remote vision-analysis services

ScreenScanner asks a RemoteAnalyzer first and falls back to local OCR when it
raises. Concrete services implement fetch_analysis(), returning the model's raw
answer; parsing is delegated to a ResponseParser so its heuristics can change
without touching any client.
"""
from abc import ABC as AbstractBaseClass, abstractmethod
from typing import Optional
from AnalysisResult import AnalysisResult
from ResponseParser import ResponseParser, SectionResponseParser


class RemoteAnalyzer(AbstractBaseClass):
    """Abstract base class for remote analyzers.

    Attributes:
        parser: ResponseParser converting raw model text to an AnalysisResult
    """

    name = "remote"

    def __init__(self, parser: Optional[ResponseParser] = None):
        self.parser = parser or SectionResponseParser()

    @abstractmethod
    async def fetch_analysis(self, image_b64: str) -> str:
        """Send a bare base64 image to the service and return its raw text answer.

        Implementations raise on transport errors, missing credentials or
        non-success responses; ScreenScanner handles the fallback.
        """
        pass

    async def analyze(self, image_b64: str) -> AnalysisResult:
        content = await self.fetch_analysis(image_b64)
        return self.parser.parse(content)
