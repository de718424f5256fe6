"""
Tests for settings validation and the reconciliation scheduler wrapper
"""

import asyncio
from datetime import datetime

import pytest
from pydantic import ValidationError

from app.config import Settings
from app.services import reconciliation_scheduler

from conftest import make_bed, make_allocation


class TestSettings:

    def test_defaults(self):
        settings = Settings(VENUE_TIMEZONE="Asia/Colombo")
        assert settings.business_open_hour == 8
        assert settings.business_close_hour == 22
        assert settings.slot_minutes == 30
        assert settings.booked_soon_minutes == 30
        assert settings.auto_cancel_grace_minutes == 15

    def test_close_must_follow_open(self):
        with pytest.raises(ValidationError):
            Settings(BUSINESS_OPEN_HOUR=22, BUSINESS_CLOSE_HOUR=8)

    def test_slot_length_must_be_positive(self):
        with pytest.raises(ValidationError):
            Settings(SLOT_MINUTES=0)

    def test_postgres_scheme_is_normalized(self):
        settings = Settings(DATABASE_URL="postgres://spa:secret@db/oxyspa")
        assert settings.normalized_database_url == "postgresql://spa:secret@db/oxyspa"

    def test_cors_origins_are_deduplicated(self):
        settings = Settings(ALLOWED_ORIGINS="http://a.test/, http://a.test,http://b.test")
        assert settings.cors_origins == ["http://a.test", "http://b.test"]


class TestReconciliationScheduler:

    def test_run_reconciliation_records_last_result(self, db):
        bed = make_bed(db)
        make_allocation(db, bed, datetime(2026, 3, 5, 10), datetime(2026, 3, 5, 11))

        result = reconciliation_scheduler.run_reconciliation(now=datetime(2026, 3, 5, 10, 5), db=db)

        assert result["activated"] == 1
        status = reconciliation_scheduler.get_scheduler_status()
        assert status["running"] is False
        assert status["last_run_result"] == result
        assert status["last_run"] is not None

    def test_scheduled_job_logs_instead_of_raising(self, monkeypatch):
        def broken_run(now=None, db=None):
            raise RuntimeError("database went away")

        monkeypatch.setattr(reconciliation_scheduler, "run_reconciliation", broken_run)

        asyncio.run(reconciliation_scheduler.run_reconciliation_job())

    def test_stop_without_start_is_harmless(self):
        assert reconciliation_scheduler.stop_reconciliation_scheduler() is True
