"""
Tests for the fire data simulation script
"""
import random

import sys
sys.path.insert(0, '.')

from simulate_data import MOCK_FIRE_DATA, SATELLITE_REPORTER, simulate_fire_data, verify_random_incidents
from src.registry.models import IncidentStatus


class TestSimulation:
    """Test suite for seeding demo data."""

    def test_seeds_every_detection(self, memory_system):
        recorded = simulate_fire_data(memory_system)

        assert recorded == len(MOCK_FIRE_DATA)
        assert memory_system.registry.count_incidents() == 4
        assert memory_system.registry.get_incident(1).lat_int == 44428000

    def test_verifies_first_three(self, memory_system):
        simulate_fire_data(memory_system)

        verified = verify_random_incidents(memory_system, rng=random.Random(7))

        assert verified == 3
        statuses = [memory_system.registry.get_incident(i).status for i in range(1, 5)]
        assert all(s in (IncidentStatus.VERIFIED, IncidentStatus.RESOLVED) for s in statuses[:3])
        assert statuses[3] == IncidentStatus.REPORTED
        assert memory_system.rewards.balance_of(SATELLITE_REPORTER) == 30

    def test_nothing_to_verify(self, memory_system):
        assert verify_random_incidents(memory_system) == 0
