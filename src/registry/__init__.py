"""
FireChain - Incident Registry
Append-only store of fire-incident reports.
"""

from src.registry.incident_registry import IncidentRegistry, ReporterIncidentIds
from src.registry.models import Incident, IncidentStatus, Severity

__all__ = [
    "IncidentRegistry",
    "ReporterIncidentIds",
    "Incident",
    "IncidentStatus",
    "Severity",
]
