#!/usr/bin/env python3
"""
FireChain - Simulate Fire Data
Seeds the registry with satellite/drone detections and verifies a few of them.
"""
import os
import random
import sys

# Add src to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from src.core.exceptions import FireChainError
from src.registry.models import IncidentStatus
from src.system.container import FireChainSystem, build_system

# Mock satellite/drone detections
MOCK_FIRE_DATA = [
    {
        "location": "Yellowstone National Park, WY",
        "description": "Satellite detected thermal anomaly in forest area",
        "latitude": 44.4280,
        "longitude": -110.5885,
        "severity": "High",
    },
    {
        "location": "Angeles National Forest, CA",
        "description": "Drone surveillance identified smoke plumes",
        "latitude": 34.2411,
        "longitude": -117.8443,
        "severity": "Critical",
    },
    {
        "location": "Great Smoky Mountains, TN",
        "description": "Automated fire detection system alert",
        "latitude": 35.6532,
        "longitude": -83.5070,
        "severity": "Medium",
    },
    {
        "location": "Olympic National Forest, WA",
        "description": "Thermal imaging detected hotspot",
        "latitude": 47.8021,
        "longitude": -123.6044,
        "severity": "Low",
    },
]

SATELLITE_REPORTER = "satellite-feed"
DEMO_VERIFIER = "ranger-station"


def simulate_fire_data(system: FireChainSystem, reporter: str = SATELLITE_REPORTER) -> int:
    """Report every mock detection. Returns the number recorded."""
    recorded = 0

    for i, fire in enumerate(MOCK_FIRE_DATA, start=1):
        print(f"\nReporting incident {i}/{len(MOCK_FIRE_DATA)}:")
        print(f"   Location: {fire['location']}")
        print(f"   Severity: {fire['severity']}")

        try:
            incident = system.registry.create_incident(reporter=reporter, **fire)
        except FireChainError as e:
            print(f"   Failed to report incident: {e.message}")
            continue

        print(f"   Recorded as incident #{incident.id} ({incident.lat_int}, {incident.lng_int})")
        recorded += 1

    print(f"\nTotal incidents in system: {system.registry.count_incidents()}")
    return recorded


def verify_random_incidents(
    system: FireChainSystem,
    verifier: str = DEMO_VERIFIER,
    rng: random.Random = None
) -> int:
    """Verify up to three incidents, mostly to Verified and sometimes Resolved."""
    rng = rng or random.Random()
    total = system.registry.count_incidents()

    if total == 0:
        print("No incidents to verify")
        return 0

    # Mostly verified, some resolved
    choices = [IncidentStatus.VERIFIED] * 3 + [IncidentStatus.RESOLVED]
    verified = 0

    for incident_id in range(1, min(3, total) + 1):
        status = rng.choice(choices)
        print(f"\nVerifying incident {incident_id}...")
        try:
            incident = system.verification.verify(incident_id, status, verifier)
        except FireChainError as e:
            print(f"   Failed to verify incident {incident_id}: {e.message}")
            continue

        print(f"   Status set to: {incident.status.label}")
        verified += 1

    return verified


def main():
    print("=" * 60)
    print("FireChain - Simulating Fire Data")
    print("=" * 60)

    system = build_system()
    try:
        simulate_fire_data(system)
        verify_random_incidents(system)

        print(f"\nReporter balance: {system.rewards.balance_of(SATELLITE_REPORTER)}")
        print("=" * 60)
    finally:
        system.shutdown()


if __name__ == "__main__":
    main()
