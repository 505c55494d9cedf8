"""
FireChain - Notification Dispatcher
Fire-and-forget delivery of incident events to notification sinks.
"""

import logging
from collections import deque
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Deque, List, Optional, Protocol

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IncidentEvent:
    """Emitted after an incident's creation is confirmed."""
    incident_id: int
    reporter: str
    location: str
    severity: str


class NotificationSink(Protocol):
    """Anything that can receive incident events."""

    def notify(self, event: IncidentEvent) -> None:
        ...


class LoggingSink:
    """Writes incident events to the application log, keeping the latest few."""

    def __init__(self, history: int = 100):
        self.events: Deque[IncidentEvent] = deque(maxlen=history)

    def notify(self, event: IncidentEvent) -> None:
        self.events.append(event)
        logger.info(
            f"New incident #{event.incident_id} [{event.severity}] at {event.location} "
            f"reported by {event.reporter}"
        )


class SMSSink:
    """Sends incident events as SMS alerts to a fixed list of numbers."""

    def __init__(self, sender, phone_numbers: List[str]):
        """
        Initialize SMS sink.

        Args:
            sender: TwilioSMSSender or MockSMSSender
            phone_numbers: Recipients for every alert
        """
        self.sender = sender
        self.phone_numbers = list(phone_numbers)

    def notify(self, event: IncidentEvent) -> None:
        if not self.phone_numbers:
            return
        self.sender.send_bulk_alert(
            self.phone_numbers,
            severity=event.severity,
            location=event.location,
            message=f"Incident #{event.incident_id} reported",
        )


class NotificationDispatcher:
    """
    Delivers events to sinks on a background worker pool.

    Delivery is at-most-once: a failed sink is logged and never retried,
    and publish() never raises.
    """

    def __init__(
        self,
        sinks: Optional[List[NotificationSink]] = None,
        max_workers: int = 2
    ):
        """
        Initialize dispatcher.

        Args:
            sinks: Notification sinks
            max_workers: Worker threads; 0 delivers inline on the caller's thread
        """
        self.sinks: List[NotificationSink] = list(sinks or [])
        self._executor = (
            ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="firechain-notify")
            if max_workers > 0 else None
        )

    def publish(self, event: IncidentEvent) -> None:
        """Hand the event to every sink without waiting for delivery."""
        for sink in self.sinks:
            if self._executor is None:
                self._deliver(sink, event)
                continue
            try:
                self._executor.submit(self._deliver, sink, event)
            except RuntimeError as e:
                # Executor already shut down
                logger.warning(f"Dropped notification for incident {event.incident_id}: {e}")

    @staticmethod
    def _deliver(sink: NotificationSink, event: IncidentEvent) -> None:
        try:
            sink.notify(event)
        except Exception as e:
            logger.error(
                f"Notification sink {type(sink).__name__} failed for incident "
                f"{event.incident_id}: {e}"
            )

    def shutdown(self, wait: bool = True) -> None:
        """Stop the worker pool."""
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
