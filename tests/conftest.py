"""
Pytest configuration and fixtures
"""
import pytest
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from src.alerts.dispatcher import LoggingSink, NotificationDispatcher
from src.core.config import Settings
from src.database.connection import DatabaseConnection
from src.ledger.memory import InMemoryLedger
from src.ledger.sql import SQLLedger
from src.system.container import build_system


@pytest.fixture
def test_settings():
    """Settings isolated from the environment and .env file."""
    return Settings(
        _env_file=None,
        ledger_backend="memory",
        reward_amount=10,
        initial_fund_pool=0,
        notification_workers=0,
        ledger_confirmation_timeout_seconds=5.0,
        ledger_retry_backoff_seconds=0.0,
    )


@pytest.fixture
def memory_ledger():
    """Fresh in-memory ledger."""
    return InMemoryLedger(default_timeout=5.0)


@pytest.fixture
def sql_db():
    """In-memory SQLite database."""
    db = DatabaseConnection(database_url="sqlite://", echo=False)
    yield db
    db.close()


@pytest.fixture
def sql_ledger(sql_db):
    """SQL ledger over in-memory SQLite."""
    return SQLLedger(db=sql_db, max_retries=2, retry_backoff_seconds=0.0, default_timeout=5.0)


@pytest.fixture(params=["memory", "sql"])
def ledger(request):
    """Each ledger backend in turn."""
    if request.param == "memory":
        return InMemoryLedger(default_timeout=5.0)
    db = DatabaseConnection(database_url="sqlite://", echo=False)
    request.addfinalizer(db.close)
    return SQLLedger(db=db, max_retries=2, retry_backoff_seconds=0.0, default_timeout=5.0)


@pytest.fixture
def logging_sink():
    return LoggingSink()


@pytest.fixture
def system(test_settings, ledger, logging_sink):
    """FireChain system over each ledger backend, notifications delivered inline."""
    notifier = NotificationDispatcher([logging_sink], max_workers=0)
    built = build_system(test_settings, ledger=ledger, notifier=notifier)
    yield built
    built.shutdown()


@pytest.fixture
def memory_system(test_settings, memory_ledger, logging_sink):
    """FireChain system over the in-memory ledger only."""
    notifier = NotificationDispatcher([logging_sink], max_workers=0)
    built = build_system(test_settings, ledger=memory_ledger, notifier=notifier)
    yield built
    built.shutdown()


@pytest.fixture
def yellowstone_report():
    """Incident report at Yellowstone with six-decimal coordinates."""
    return {
        "location": "Ridge Rd",
        "description": "smoke",
        "latitude": 44.428012,
        "longitude": -110.588512,
        "severity": "High",
    }


@pytest.fixture
def mock_fire_reports():
    """Satellite/drone detections used by the simulation script."""
    return [
        {
            "location": "Yellowstone National Park, WY",
            "description": "Satellite detected thermal anomaly in forest area",
            "latitude": 44.4280,
            "longitude": -110.5885,
            "severity": 2,
        },
        {
            "location": "Angeles National Forest, CA",
            "description": "Drone surveillance identified smoke plumes",
            "latitude": 34.2411,
            "longitude": -117.8443,
            "severity": 3,
        },
        {
            "location": "Great Smoky Mountains, TN",
            "description": "Automated fire detection system alert",
            "latitude": 35.6532,
            "longitude": -83.5070,
            "severity": 1,
        },
        {
            "location": "Olympic National Forest, WA",
            "description": "Thermal imaging detected hotspot",
            "latitude": 47.8021,
            "longitude": -123.6044,
            "severity": 0,
        },
    ]
