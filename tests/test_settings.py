"""Tests for environment-driven configuration."""

from decimal import Decimal

import pytest
from pydantic import ValidationError as PydanticValidationError

from pocket_ledger.config import LedgerSettings, get_settings, validate_all_settings


@pytest.fixture
def clean_env(monkeypatch):
    for name in ("GOOGLE_SHEETS_CREDENTIALS_PATH", "GOOGLE_SHEETS_SPREADSHEET_ID"):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield monkeypatch
    get_settings.cache_clear()


class TestLedgerSettings:
    """Tests for ledger settings."""

    def test_defaults(self):
        """Test the default ledger settings."""
        settings = LedgerSettings(_env_file=None)
        assert settings.epsilon == Decimal("0.01")
        assert settings.storage_backend == "memory"
        assert settings.balance_write_retries == 3

    def test_reads_prefixed_environment(self, monkeypatch):
        """Test LEDGER_ variables are read."""
        monkeypatch.setenv("LEDGER_EPSILON", "0.05")
        monkeypatch.setenv("LEDGER_DUE_DATE_ALERT_DAYS", "3")
        settings = LedgerSettings(_env_file=None)
        assert settings.epsilon == Decimal("0.05")
        assert settings.due_date_alert_days == 3

    def test_rejects_unknown_backend(self):
        """Test an unknown storage backend is rejected."""
        with pytest.raises(PydanticValidationError):
            LedgerSettings(_env_file=None, storage_backend="postgres")


class TestValidateAllSettings:
    """Tests for the startup configuration report."""

    def test_reports_missing_sheets_config(self, clean_env):
        """Test missing Sheets configuration is reported."""
        results = validate_all_settings()
        assert results["ledger"] is True
        assert results["google_sheets"] is False
        assert "google_sheets_error" in results

    def test_sheets_config_from_environment(self, clean_env, tmp_path):
        """Test Sheets configuration is read from the environment."""
        credentials = tmp_path / "credentials.json"
        credentials.write_text("{}")
        clean_env.setenv("GOOGLE_SHEETS_CREDENTIALS_PATH", str(credentials))
        clean_env.setenv("GOOGLE_SHEETS_SPREADSHEET_ID", "sheet-123")

        results = validate_all_settings()

        assert results["google_sheets"] is True
        assert get_settings().google_sheets.entries_sheet_name == "Entries"
