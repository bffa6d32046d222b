"""
Outbound notifications - buyer emails and subscriber pushes.

Delivery is an external concern; services talk to a Notifier and never let a
delivery failure reach the caller.
"""
import logging
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

import httpx

logger = logging.getLogger(__name__)


@runtime_checkable
class Notifier(Protocol):
    """Capability injected into services that emit notifications"""

    def send_email(self, to: str, subject: str, body: str) -> None:
        ...

    def publish(self, event: str, payload: Dict[str, Any]) -> None:
        ...


class LoggingNotifier:
    """Writes notifications to the log; the default when nothing is configured"""

    def send_email(self, to: str, subject: str, body: str) -> None:
        logger.info(f"[EMAIL] to={to} subject={subject!r}")

    def publish(self, event: str, payload: Dict[str, Any]) -> None:
        logger.info(f"[PUBLISH] {event} {payload}")


class HttpNotifier(LoggingNotifier):
    """Posts events as JSON to every subscriber URL"""

    def __init__(self, subscriber_urls: List[str], timeout: float = 5.0, client: Optional[httpx.Client] = None):
        self.subscriber_urls = subscriber_urls
        self.timeout = timeout
        self._client = client

    def publish(self, event: str, payload: Dict[str, Any]) -> None:
        body = {"event": event, "data": payload}
        client = self._client or httpx.Client(timeout=self.timeout)
        try:
            for url in self.subscriber_urls:
                try:
                    response = client.post(url, json=body)
                    response.raise_for_status()
                except httpx.HTTPError as e:
                    logger.warning(f"Subscriber push failed: {url} {event} - {e}")
        finally:
            if self._client is None:
                client.close()


def dispatch(notifier: Notifier, recipients: List[str], subject: str, body: str,
             event: str, payload: Dict[str, Any]) -> None:
    """Email every recipient and publish the event. Failures are logged, never raised."""
    for to in recipients:
        try:
            notifier.send_email(to, subject, body)
        except Exception as e:
            logger.error(f"Email notification failed: {to} {subject!r} - {e}")
    try:
        notifier.publish(event, payload)
    except Exception as e:
        logger.error(f"Event publish failed: {event} - {e}")
