"""Services package."""

from finsight.services.provider import (
    AnalysisProvider,
    GeminiAnalysisProvider,
)

__all__ = [
    "AnalysisProvider",
    "GeminiAnalysisProvider",
]
