"""Validation package."""

from finsight.validation.normalizer import AnalysisNormalizer

__all__ = ["AnalysisNormalizer"]
