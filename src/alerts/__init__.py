"""
FireChain - Alert System
Delivers new-incident notifications via logging and SMS.
"""

from src.alerts.dispatcher import (
    IncidentEvent,
    LoggingSink,
    NotificationDispatcher,
    NotificationSink,
    SMSSink,
)
from src.alerts.sms_sender import (
    TwilioSMSSender,
    SMSMessage,
    MockSMSSender,
    get_sms_sender,
)

__all__ = [
    # Dispatcher
    "IncidentEvent",
    "NotificationDispatcher",
    "NotificationSink",
    "LoggingSink",
    "SMSSink",
    # SMS
    "TwilioSMSSender",
    "SMSMessage",
    "MockSMSSender",
    "get_sms_sender",
]
