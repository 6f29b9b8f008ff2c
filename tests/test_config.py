"""Tests for configuration and error types."""

import pytest
from decimal import Decimal

from finsight.config import AppSettings, validate_all_settings
from finsight.errors import (
    AnalysisError,
    ComparisonLimitReached,
    FinSightError,
    InvalidInput,
    MalformedAnalysis,
    OrchestratorError,
    ProviderUnavailable,
    UnknownCity,
)
from finsight.models.validation import ValidationIssue


class TestAppSettings:
    """Tests for AppSettings."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("MAX_COMPARISON_CITIES", raising=False)
        monkeypatch.delenv("ANALYSIS_TIMEOUT_SECONDS", raising=False)

        settings = AppSettings(_env_file=None)

        assert settings.max_comparison_cities == 4
        assert settings.analysis_timeout_seconds is None
        assert settings.disposable_income_tolerance == Decimal("1.00")

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("MAX_COMPARISON_CITIES", "2")
        monkeypatch.setenv("ANALYSIS_TIMEOUT_SECONDS", "30")

        settings = AppSettings(_env_file=None)

        assert settings.max_comparison_cities == 2
        assert settings.analysis_timeout_seconds == 30.0

    def test_rejects_out_of_range_limit(self, monkeypatch):
        monkeypatch.setenv("MAX_COMPARISON_CITIES", "0")
        with pytest.raises(ValueError):
            AppSettings(_env_file=None)


class TestValidateAllSettings:
    """Tests for validate_all_settings()."""

    def test_reports_missing_gemini_key(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)

        results = validate_all_settings()

        assert results["gemini"] is False
        assert "gemini_error" in results
        assert results["app"] is True

    def test_gemini_key_from_environment(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("GEMINI_API_KEY", "test-key")

        assert validate_all_settings()["gemini"] is True


class TestErrors:
    """Tests for the error hierarchy."""

    def test_families(self):
        assert issubclass(InvalidInput, FinSightError)
        assert issubclass(UnknownCity, OrchestratorError)
        assert issubclass(ProviderUnavailable, AnalysisError)
        assert issubclass(MalformedAnalysis, AnalysisError)

    def test_str_is_technical_message(self):
        error = UnknownCity("Atlantis")
        assert str(error) == "Atlantis is not in the comparison."
        assert error.user_message == "That city is not in the comparison."

    def test_invalid_input_custom_user_message(self):
        error = InvalidInput("blank", user_message="Please enter a city name.")
        assert error.user_message == "Please enter a city name."
        assert InvalidInput.user_message == "Please enter a valid income."

    def test_limit_message_is_per_instance(self):
        error = ComparisonLimitReached("Austin", 3)
        assert error.user_message == "You can compare at most 3 cities at a time."
        assert "{limit}" in ComparisonLimitReached.user_message

    def test_malformed_carries_issues(self):
        issue = ValidationIssue(field="summary", issue_type="missing", message="summary missing")
        error = MalformedAnalysis("bad payload", issues=[issue])
        assert error.issues == [issue]
        assert error.details["issues"][0]["field"] == "summary"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
