"""
Tests for the projection/query service
"""
from unittest.mock import patch

import pytest

import sys
sys.path.insert(0, '.')

from src.alerts.dispatcher import NotificationDispatcher
from src.core.exceptions import LedgerReadError, ValidationError
from src.database.models import LedgerRecord
from src.registry.models import IncidentStatus
from src.system.container import build_system


class TestListIncidents:
    """Test suite for tolerant range reads."""

    @pytest.fixture(autouse=True)
    def seeded(self, system, mock_fire_reports):
        self.system = system
        self.projection = system.projection
        for report in mock_fire_reports:
            system.registry.create_incident(reporter="satellite", **report)
        system.registry.create_incident(
            reporter="alice",
            location="Ridge Rd",
            description="smoke",
            latitude=44.428012,
            longitude=-110.588512,
            severity="High",
        )

    def test_list_range(self):
        listing = self.projection.list_incidents(2, 4)

        assert [i.id for i in listing.incidents] == [2, 3, 4]
        assert listing.count == 3
        assert listing.failed_ids == []
        assert not listing.partial

    def test_range_past_end_is_clamped(self):
        listing = self.projection.list_incidents(4, 100)

        assert [i.id for i in listing.incidents] == [4, 5]
        assert listing.failed_ids == []

    def test_empty_range(self):
        assert self.projection.list_incidents(4, 2).count == 0

    def test_non_integer_bounds(self):
        with pytest.raises(ValidationError):
            self.projection.list_incidents("1", 5)

    def test_one_unreadable_record_is_reported_failed(self):
        """Incident 3 fails to read; the other four are still listed."""
        original = self.system.ledger.read_record

        def flaky_read(collection, key):
            if collection == "incidents" and str(key) == "3":
                raise LedgerReadError("node timed out reading incidents/3")
            return original(collection, key)

        with patch.object(self.system.ledger, "read_record", side_effect=flaky_read):
            listing = self.projection.list_incidents(1, 5)

        assert [i.id for i in listing.incidents] == [1, 2, 4, 5]
        assert listing.count == 4
        assert listing.failed_ids == [3]
        assert listing.partial

    def test_list_all(self):
        listing = self.projection.list_all()

        assert listing.count == 5
        assert listing.to_dict()["incidents"][0]["location"] == "Yellowstone National Park, WY"

    def test_incidents_by_reporter(self):
        listing = self.projection.incidents_by_reporter("alice")

        assert [i.id for i in listing.incidents] == [5]

    def test_incidents_in_area(self):
        # Western United States
        listing = self.projection.incidents_in_area(west=-125, south=30, east=-100, north=50)

        assert [i.id for i in listing.incidents] == [1, 2, 4, 5]

    def test_inverted_area_rejected(self):
        with pytest.raises(ValidationError):
            self.projection.incidents_in_area(west=-100, south=30, east=-125, north=50)

    def test_statistics(self):
        self.system.verification.verify(1, "Verified", "ranger")
        self.system.verification.verify(2, "FalseReport", "ranger")

        stats = self.projection.statistics(pool_balance=0)

        assert stats["total_incidents"] == 5
        assert stats["readable_incidents"] == 5
        assert stats["by_status"][IncidentStatus.VERIFIED.label] == 1
        assert stats["by_status"]["FalseReport"] == 1
        assert stats["by_status"]["Reported"] == 3
        assert stats["by_severity"]["High"] == 2
        assert stats["rewards_claimed"] == 1
        assert stats["verification_rate"] == 50.0
        assert stats["fund_pool_balance"] == 0


class TestCorruptedSQLRecord:
    """An undecodable row in the SQL store is skipped by listings."""

    def test_corrupted_row_skipped(self, sql_ledger, sql_db, test_settings, mock_fire_reports):
        notifier = NotificationDispatcher([], max_workers=0)
        system = build_system(test_settings, ledger=sql_ledger, notifier=notifier)
        for report in mock_fire_reports:
            system.registry.create_incident(reporter="satellite", **report)

        with sql_db.get_session() as session:
            row = session.query(LedgerRecord).filter_by(collection="incidents", key="2").one()
            row.payload = {"id": 2, "location": "garbled"}

        listing = system.projection.list_all()

        assert [i.id for i in listing.incidents] == [1, 3, 4]
        assert listing.failed_ids == [2]
