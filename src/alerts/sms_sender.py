"""
SMS notification sender using Twilio
Sends new-incident alerts via SMS to registered responders
"""

import logging
from typing import List, Optional
from dataclasses import dataclass
from datetime import datetime, timezone

from src.core.config import settings
from src.core.constants import SMS_MAX_LENGTH

logger = logging.getLogger(__name__)


@dataclass
class SMSMessage:
    """SMS message data structure."""
    to: str
    body: str
    severity: str
    location: Optional[str] = None
    sent_at: Optional[datetime] = None
    message_sid: Optional[str] = None
    status: str = "pending"


class TwilioSMSSender:
    """
    SMS sender using Twilio API.

    Sends incident alert notifications via SMS.
    """

    def __init__(
        self,
        account_sid: Optional[str] = None,
        auth_token: Optional[str] = None,
        from_number: Optional[str] = None
    ):
        """
        Initialize Twilio SMS sender.

        Args:
            account_sid: Twilio account SID
            auth_token: Twilio auth token
            from_number: Twilio phone number to send from
        """
        self.account_sid = account_sid or settings.twilio_account_sid
        self.auth_token = auth_token or settings.twilio_auth_token
        self.from_number = from_number or settings.twilio_phone_number

        self._client = None
        self._initialized = False

        if self.account_sid and self.auth_token:
            self._initialize_client()

    def _initialize_client(self) -> None:
        """Initialize Twilio client."""
        try:
            from twilio.rest import Client
            self._client = Client(self.account_sid, self.auth_token)
            self._initialized = True
            logger.info("Twilio SMS client initialized")
        except ImportError:
            logger.warning("Twilio package not installed. SMS sending disabled.")
            self._initialized = False
        except Exception as e:
            logger.error(f"Failed to initialize Twilio client: {e}")
            self._initialized = False

    @property
    def is_configured(self) -> bool:
        """Check if SMS sender is properly configured."""
        return bool(
            self.account_sid and
            self.auth_token and
            self.from_number and
            self._initialized
        )

    def send_alert(
        self,
        phone_number: str,
        severity: str,
        location: str,
        message: str
    ) -> SMSMessage:
        """
        Send an incident alert SMS.

        Args:
            phone_number: Recipient phone number (E.164 format)
            severity: Incident severity label
            location: Incident location label
            message: Alert message

        Returns:
            SMSMessage with send status
        """
        formatted_number = format_phone_number(phone_number)
        body = build_alert_body(severity, location, message)

        sms = SMSMessage(
            to=formatted_number,
            body=body,
            severity=severity,
            location=location
        )

        if not self.is_configured:
            logger.warning(f"SMS not configured. Would send to {formatted_number}: {body}")
            sms.status = "not_configured"
            return sms

        try:
            twilio_message = self._client.messages.create(
                body=body,
                from_=self.from_number,
                to=formatted_number
            )

            sms.message_sid = twilio_message.sid
            sms.status = twilio_message.status
            sms.sent_at = datetime.now(timezone.utc)

            logger.info(f"SMS sent to {formatted_number}: {twilio_message.sid}")

        except Exception as e:
            logger.error(f"Failed to send SMS to {formatted_number}: {e}")
            sms.status = "failed"

        return sms

    def send_bulk_alert(
        self,
        phone_numbers: List[str],
        severity: str,
        location: str,
        message: str
    ) -> List[SMSMessage]:
        """
        Send alert to multiple phone numbers.

        Returns:
            List of SMSMessage with send statuses
        """
        results = [
            self.send_alert(phone, severity, location, message)
            for phone in phone_numbers
        ]

        sent = sum(1 for r in results if r.status in ["queued", "sent", "delivered"])
        failed = sum(1 for r in results if r.status == "failed")
        logger.info(f"Bulk SMS: {sent} sent, {failed} failed out of {len(phone_numbers)}")

        return results


class MockSMSSender:
    """
    Mock SMS sender for testing.

    Logs messages instead of sending them.
    """

    def __init__(self):
        self.sent_messages: List[SMSMessage] = []
        logger.info("Mock SMS sender initialized")

    @property
    def is_configured(self) -> bool:
        return True

    def send_alert(
        self,
        phone_number: str,
        severity: str,
        location: str,
        message: str
    ) -> SMSMessage:
        """Log alert instead of sending."""
        sms = SMSMessage(
            to=phone_number,
            body=build_alert_body(severity, location, message),
            severity=severity,
            location=location,
            status="mock_sent",
            sent_at=datetime.now(timezone.utc),
            message_sid=f"MOCK_{len(self.sent_messages)}"
        )

        self.sent_messages.append(sms)
        logger.info(f"[MOCK SMS] To: {phone_number}, Severity: {severity}, Location: {location}")

        return sms

    def send_bulk_alert(
        self,
        phone_numbers: List[str],
        severity: str,
        location: str,
        message: str
    ) -> List[SMSMessage]:
        """Send mock alerts to multiple numbers."""
        return [
            self.send_alert(phone, severity, location, message)
            for phone in phone_numbers
        ]


def format_phone_number(phone: str) -> str:
    """
    Format phone number to E.164 format.

    Ten-digit numbers are treated as North American numbers.
    """
    if phone.strip().startswith("+"):
        return "+" + "".join(filter(str.isdigit, phone))

    cleaned = "".join(filter(str.isdigit, phone))
    if len(cleaned) == 10:
        return f"+1{cleaned}"
    return f"+{cleaned}"


def build_alert_body(severity: str, location: str, message: str) -> str:
    """Build SMS body for an incident alert, clipped to one SMS."""
    emojis = {
        "LOW": "🟢",
        "MEDIUM": "🟡",
        "HIGH": "🟠",
        "CRITICAL": "🚨",
    }
    emoji = emojis.get(severity.upper(), "🔥")
    body = f"{emoji} FireChain Alert [{severity}] {location}: {message}"
    return body[:SMS_MAX_LENGTH]


def get_sms_sender(
    account_sid: Optional[str] = None,
    auth_token: Optional[str] = None,
    from_number: Optional[str] = None
):
    """
    Get SMS sender instance.

    Returns mock sender if Twilio is not configured.
    """
    sender = TwilioSMSSender(account_sid, auth_token, from_number)

    if not sender.is_configured:
        logger.warning("Twilio not configured, using mock SMS sender")
        return MockSMSSender()

    return sender
