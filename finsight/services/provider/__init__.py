"""
Analysis Provider Package

Abstract interface plus the Gemini implementation.
"""

from finsight.services.provider.interface import AnalysisProvider
from finsight.services.provider.gemini import (
    GeminiAnalysisProvider,
    build_analysis_prompt,
    parse_json_object,
)

__all__ = [
    "AnalysisProvider",
    "GeminiAnalysisProvider",
    "build_analysis_prompt",
    "parse_json_object",
]
