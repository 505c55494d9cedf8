"""
Tests for the incident registry
"""
from unittest.mock import MagicMock

import pytest

import sys
sys.path.insert(0, '.')

from src.alerts.dispatcher import IncidentEvent
from src.core.constants import INCIDENT_RECORD_FIELDS
from src.core.exceptions import (
    ConfirmationTimeoutError,
    LedgerReadError,
    LedgerRejected,
    NotFoundError,
    OutOfRangeError,
    ValidationError,
)
from src.ledger.base import Confirmation, ConfirmationStatus, RejectionKind
from src.ledger.memory import InMemoryLedger
from src.registry.incident_registry import IncidentRegistry
from src.registry.models import Incident, IncidentStatus, Severity


class TestSeverityAndStatus:
    """Test suite for the ordinal enums."""

    def test_ordinals(self):
        assert [int(s) for s in Severity] == [0, 1, 2, 3]
        assert IncidentStatus.FALSE_REPORT == 3

    @pytest.mark.parametrize("value,expected", [
        ("High", Severity.HIGH),
        ("critical", Severity.CRITICAL),
        (0, Severity.LOW),
        ("1", Severity.MEDIUM),
        (Severity.HIGH, Severity.HIGH),
    ])
    def test_parse_severity(self, value, expected):
        assert Severity.parse(value) == expected

    @pytest.mark.parametrize("value", ["Extreme", 4, -1, True, None, 2.0])
    def test_parse_severity_invalid(self, value):
        with pytest.raises(ValidationError):
            Severity.parse(value)

    @pytest.mark.parametrize("value", ["FalseReport", "false_report", "FALSE_REPORT", 3])
    def test_parse_false_report(self, value):
        assert IncidentStatus.parse(value) == IncidentStatus.FALSE_REPORT

    def test_labels(self):
        assert Severity.CRITICAL.label == "Critical"
        assert IncidentStatus.FALSE_REPORT.label == "FalseReport"
        assert IncidentStatus.RESOLVED.is_terminal
        assert not IncidentStatus.VERIFIED.is_terminal


class TestCreateIncident:
    """Test suite for recording incidents."""

    def test_report_and_read_back(self, system, yellowstone_report):
        """alice reports at Ridge Rd and reads the same record back."""
        incident = system.registry.create_incident(reporter="alice", **yellowstone_report)

        assert incident.id == 1
        assert incident.lat_int == 44428012
        assert incident.lng_int == -110588512
        assert incident.status == IncidentStatus.REPORTED
        assert incident.reward_claimed is False
        assert incident.verifier is None

        stored = system.registry.get_incident(1)
        assert stored == incident
        assert stored.created_at == incident.created_at
        assert system.registry.count_incidents() == 1

    def test_ids_are_sequential(self, system, mock_fire_reports):
        ids = [
            system.registry.create_incident(reporter="satellite", **report).id
            for report in mock_fire_reports
        ]

        assert ids == [1, 2, 3, 4]
        assert system.registry.count_incidents() == 4
        assert system.registry.get_incident(2).severity == Severity.CRITICAL

    def test_record_field_order(self, system, yellowstone_report):
        system.registry.create_incident(reporter="alice", **yellowstone_report)

        record = system.ledger.read_record("incidents", 1)
        assert tuple(record) == INCIDENT_RECORD_FIELDS
        assert Incident.from_record(record).to_record() == record

    def test_text_is_trimmed(self, system, yellowstone_report):
        yellowstone_report["location"] = "  Ridge Rd  "

        incident = system.registry.create_incident(reporter=" alice ", **yellowstone_report)

        assert incident.location == "Ridge Rd"
        assert incident.reporter == "alice"

    @pytest.mark.parametrize("field_name", ["location", "description"])
    def test_empty_text_rejected(self, system, yellowstone_report, field_name):
        yellowstone_report[field_name] = "   "

        with pytest.raises(ValidationError):
            system.registry.create_incident(reporter="alice", **yellowstone_report)

        assert system.registry.count_incidents() == 0

    def test_out_of_range_latitude_rejected(self, system, yellowstone_report):
        yellowstone_report["latitude"] = 91

        with pytest.raises(OutOfRangeError):
            system.registry.create_incident(reporter="alice", **yellowstone_report)

        assert system.registry.count_incidents() == 0

    def test_invalid_severity_rejected(self, system, yellowstone_report):
        yellowstone_report["severity"] = 7

        with pytest.raises(ValidationError):
            system.registry.create_incident(reporter="alice", **yellowstone_report)

    def test_missing_reporter_rejected(self, system, yellowstone_report):
        with pytest.raises(ValidationError):
            system.registry.create_incident(reporter="", **yellowstone_report)

    def test_notification_emitted(self, system, yellowstone_report, logging_sink):
        system.registry.create_incident(reporter="alice", **yellowstone_report)

        assert list(logging_sink.events) == [
            IncidentEvent(incident_id=1, reporter="alice", location="Ridge Rd", severity="High")
        ]

    def test_notifier_failure_does_not_fail_creation(self, yellowstone_report):
        notifier = MagicMock()
        notifier.publish.side_effect = RuntimeError("sink down")
        registry = IncidentRegistry(InMemoryLedger(), notifier=notifier)

        incident = registry.create_incident(reporter="alice", **yellowstone_report)

        assert incident.id == 1
        notifier.publish.assert_called_once()

    def test_ledger_rejection(self, yellowstone_report):
        ledger = MagicMock()
        ledger.commit.return_value = Confirmation(
            handle_id="h1",
            status=ConfirmationStatus.REJECTED,
            error_kind=RejectionKind.UNAVAILABLE,
            detail="node offline",
        )
        registry = IncidentRegistry(ledger)

        with pytest.raises(LedgerRejected) as exc_info:
            registry.create_incident(reporter="alice", **yellowstone_report)

        assert exc_info.value.error_kind == "unavailable"

    def test_confirmation_timeout_propagates(self, yellowstone_report):
        ledger = MagicMock()
        ledger.commit.side_effect = ConfirmationTimeoutError("not confirmed")
        registry = IncidentRegistry(ledger)

        with pytest.raises(ConfirmationTimeoutError):
            registry.create_incident(reporter="alice", **yellowstone_report)


class TestGetIncident:
    """Test suite for reading incidents."""

    @pytest.mark.parametrize("incident_id", [0, -1, 1, 99])
    def test_unknown_ids(self, system, incident_id):
        with pytest.raises(NotFoundError):
            system.registry.get_incident(incident_id)

    def test_non_integer_id(self, system):
        with pytest.raises(ValidationError):
            system.registry.get_incident("1")

    def test_malformed_record(self, yellowstone_report):
        ledger = InMemoryLedger()
        registry = IncidentRegistry(ledger)
        registry.create_incident(reporter="alice", **yellowstone_report)
        ledger._records["incidents"]["1"] = {"id": 1, "location": "Ridge Rd"}

        with pytest.raises(LedgerReadError):
            registry.get_incident(1)


class TestReporterIndex:
    """Test suite for listing a reporter's incidents."""

    def test_ids_in_ascending_order(self, system, yellowstone_report):
        for reporter in ["alice", "bob", "alice", "carol", "alice"]:
            system.registry.create_incident(reporter=reporter, **yellowstone_report)

        assert list(system.registry.list_incidents_by_reporter("alice")) == [1, 3, 5]
        assert list(system.registry.list_incidents_by_reporter("dave")) == []

    def test_iteration_is_restartable(self, system, yellowstone_report):
        system.registry.create_incident(reporter="alice", **yellowstone_report)
        ids = system.registry.list_incidents_by_reporter("alice")

        assert list(ids) == [1]

        system.registry.create_incident(reporter="alice", **yellowstone_report)

        assert list(ids) == [1, 2]

    def test_unreadable_record_skipped(self, yellowstone_report):
        ledger = InMemoryLedger()
        registry = IncidentRegistry(ledger)
        for reporter in ["alice", "bob", "alice"]:
            registry.create_incident(reporter=reporter, **yellowstone_report)
        ledger._records["incidents"]["2"] = {"id": "garbage"}

        assert list(registry.list_incidents_by_reporter("alice")) == [1, 3]
        assert list(registry.list_incidents_by_reporter("bob")) == []
