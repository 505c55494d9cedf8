"""
FireChain system assembly
Wires the ledger, registry, state machine, reward ledger, fund workflow,
projections and notifications from settings
"""

import logging
from dataclasses import dataclass
from typing import Optional, Union

from src.alerts.dispatcher import LoggingSink, NotificationDispatcher, SMSSink
from src.alerts.sms_sender import MockSMSSender, SMSMessage, TwilioSMSSender, get_sms_sender
from src.core.config import Settings, settings as default_settings
from src.core.exceptions import NotificationError
from src.core.validators import require_text
from src.database.connection import DatabaseConnection
from src.funds.fund_workflow import EmergencyFundWorkflow
from src.ledger.base import LedgerClient
from src.ledger.memory import InMemoryLedger
from src.ledger.sql import SQLLedger
from src.projection.query_service import ProjectionService
from src.registry.incident_registry import IncidentRegistry
from src.rewards.reward_ledger import RewardLedger
from src.verification.state_machine import VerificationStateMachine

logger = logging.getLogger(__name__)


@dataclass
class FireChainSystem:
    """All FireChain components sharing one ledger."""
    settings: Settings
    ledger: LedgerClient
    notifier: NotificationDispatcher
    registry: IncidentRegistry
    rewards: RewardLedger
    verification: VerificationStateMachine
    funds: EmergencyFundWorkflow
    projection: ProjectionService
    sms_sender: Union[TwilioSMSSender, MockSMSSender]

    def notify(
        self,
        phone_number: str,
        message: str,
        incident_id: Optional[int] = None
    ) -> SMSMessage:
        """
        Send an SMS alert now, outside the new-incident notifications.

        With an incident id the alert carries that incident's severity and
        location.

        Raises:
            ValidationError: Missing phone number or message
            NotFoundError: Unknown incident
            NotificationError: Gateway did not accept the message
        """
        phone_number = require_text("phone_number", phone_number)
        message = require_text("message", message)

        severity, location = "Alert", "FireChain"
        if incident_id is not None:
            incident = self.registry.get_incident(incident_id)
            severity, location = incident.severity.label, incident.location

        sms = self.sms_sender.send_alert(phone_number, severity, location, message)
        if sms.status == "failed":
            raise NotificationError(
                f"SMS to {sms.to} was not accepted",
                {"to": sms.to, "incident_id": incident_id},
            )
        return sms

    def shutdown(self, wait: bool = True) -> None:
        """Stop background notification workers."""
        self.notifier.shutdown(wait=wait)


def build_ledger(config: Settings) -> LedgerClient:
    """Create the ledger backend selected by LEDGER_BACKEND."""
    timeout = config.ledger_confirmation_timeout_seconds

    if config.uses_sql_ledger:
        db = DatabaseConnection(database_url=config.database_url, echo=config.db_echo)
        return SQLLedger(
            db=db,
            max_retries=config.ledger_max_retries,
            retry_backoff_seconds=config.ledger_retry_backoff_seconds,
            default_timeout=timeout,
        )

    if config.ledger_backend.lower() != "memory":
        raise ValueError(f"Unknown ledger backend: {config.ledger_backend}")
    return InMemoryLedger(default_timeout=timeout)


def build_sms_sender(config: Settings) -> Union[TwilioSMSSender, MockSMSSender]:
    """Twilio sender from the configured credentials, or the mock sender."""
    return get_sms_sender(
        config.twilio_account_sid,
        config.twilio_auth_token,
        config.twilio_phone_number,
    )


def build_notifier(
    config: Settings,
    sms_sender: Optional[Union[TwilioSMSSender, MockSMSSender]] = None
) -> NotificationDispatcher:
    """Create the dispatcher with a logging sink and, if configured, SMS."""
    sinks = [LoggingSink()]
    if config.notify_phone_numbers:
        sender = sms_sender or build_sms_sender(config)
        sinks.append(SMSSink(sender, config.notify_phone_numbers))
    return NotificationDispatcher(sinks, max_workers=config.notification_workers)


def build_system(
    config: Optional[Settings] = None,
    ledger: Optional[LedgerClient] = None,
    notifier: Optional[NotificationDispatcher] = None
) -> FireChainSystem:
    """
    Assemble a FireChain system.

    Args:
        config: Settings (global settings if omitted)
        ledger: Ledger to use instead of the configured backend
        notifier: Dispatcher to use instead of the configured sinks

    Returns:
        FireChainSystem
    """
    config = config or default_settings
    ledger = ledger or build_ledger(config)
    sms_sender = build_sms_sender(config)
    notifier = notifier or build_notifier(config, sms_sender)
    timeout = config.ledger_confirmation_timeout_seconds

    registry = IncidentRegistry(ledger, notifier=notifier, confirmation_timeout=timeout)
    rewards = RewardLedger(ledger, confirmation_timeout=timeout)
    verification = VerificationStateMachine(
        registry,
        rewards,
        reward_amount=config.reward_amount,
        authorized_verifiers=config.authorized_verifiers,
        confirmation_timeout=timeout,
    )
    funds = EmergencyFundWorkflow(
        ledger,
        registry,
        approvers=config.fund_approvers,
        confirmation_timeout=timeout,
    )

    if config.initial_fund_pool > 0 and funds.pool_balance() == 0:
        funds.deposit(config.initial_fund_pool, "system")

    logger.info(f"FireChain system ready (ledger={type(ledger).__name__})")

    return FireChainSystem(
        settings=config,
        ledger=ledger,
        notifier=notifier,
        registry=registry,
        rewards=rewards,
        verification=verification,
        funds=funds,
        projection=ProjectionService(registry),
        sms_sender=sms_sender,
    )


# Global system instance
_system: Optional[FireChainSystem] = None


def get_system() -> FireChainSystem:
    """
    Get global system instance.

    Returns:
        FireChainSystem built from the global settings
    """
    global _system
    if _system is None:
        _system = build_system()
    return _system


def set_system(system: Optional[FireChainSystem]) -> None:
    """Replace the global system instance (None clears it)."""
    global _system
    _system = system
