"""
Notifier - Web Push fan-out for newly archived issues.

One payload is built per run and sent to every active subscription
concurrently. Each endpoint is isolated: a dead endpoint is counted as a
failure and logged, never raised and never pruned here.
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

from pywebpush import WebPushException, webpush

from .database.models import DBSubscription
from .database.subscription_repository import POLICY_OPT_OUT
from .exceptions import DispatchFailure

if TYPE_CHECKING:
    from .database import Database

logger = logging.getLogger(__name__)

# Web Push services reject payloads over 4KB
MAX_PAYLOAD_BYTES = 4096


@dataclass
class DispatchSummary:
    """Aggregate outcome of a notification fan-out."""
    succeeded: int = 0
    failed: int = 0


class PushTransport(Protocol):
    """Delivers one encrypted payload to one push endpoint."""

    async def send(self, endpoint: str, auth: str, p256dh: str, payload: str) -> None:
        """Raise DispatchFailure if the push service doesn't accept the message."""
        ...


class WebPushTransport:
    """PushTransport backed by pywebpush with VAPID signing."""

    def __init__(self, vapid_private_key: str, vapid_subject: str, ttl: int = 86400):
        self.vapid_private_key = vapid_private_key
        self.vapid_subject = vapid_subject
        self.ttl = ttl

    async def send(self, endpoint: str, auth: str, p256dh: str, payload: str) -> None:
        await asyncio.to_thread(self._send_sync, endpoint, auth, p256dh, payload)

    def _send_sync(self, endpoint: str, auth: str, p256dh: str, payload: str) -> None:
        try:
            webpush(
                subscription_info={
                    "endpoint": endpoint,
                    "keys": {"auth": auth, "p256dh": p256dh},
                },
                data=payload,
                vapid_private_key=self.vapid_private_key,
                vapid_claims={"sub": self.vapid_subject},
                ttl=self.ttl,
            )
        except WebPushException as e:
            status = e.response.status_code if e.response is not None else None
            raise DispatchFailure(endpoint, str(e), status=status) from e


def build_payload(count: int, icon: str = "/icon.png") -> dict:
    """Notification payload announcing `count` new issues."""
    noun = "newsletter" if count == 1 else "newsletters"
    return {
        "title": "New Newsletters Available",
        "body": f"{count} new {noun} published!",
        "icon": icon,
    }


def build_welcome_payload(icon: str = "/icon.png") -> dict:
    """Payload confirming a fresh subscription."""
    return {
        "title": "Notifications Enabled",
        "body": "You'll be notified when new newsletters are published.",
        "icon": icon,
    }


def encode_payload(payload: dict) -> str:
    """Serialize a payload, enforcing the Web Push size limit."""
    encoded = json.dumps(payload)
    if len(encoded.encode("utf-8")) > MAX_PAYLOAD_BYTES:
        raise ValueError(f"Push payload exceeds {MAX_PAYLOAD_BYTES} bytes")
    return encoded


class Notifier:
    """Sends newsletter notifications to active push subscriptions."""

    def __init__(
        self,
        db: "Database",
        transport: PushTransport | None,
        icon: str = "/icon.png",
        policy: str = POLICY_OPT_OUT,
    ):
        self.db = db
        self.transport = transport
        self.icon = icon
        self.policy = policy

    async def notify_new_issues(self, count: int) -> DispatchSummary:
        """Announce `count` new issues to every active subscription."""
        if count <= 0:
            return DispatchSummary()

        if self.transport is None:
            logger.warning("Push transport not configured, skipping notifications")
            return DispatchSummary()

        subscriptions = self.db.get_active_subscriptions(self.policy)
        logger.info(f"Sending notifications to {len(subscriptions)} subscribers")
        if not subscriptions:
            return DispatchSummary()

        payload = encode_payload(build_payload(count, self.icon))
        results = await asyncio.gather(
            *(self._dispatch(subscription, payload) for subscription in subscriptions)
        )

        summary = DispatchSummary(
            succeeded=sum(1 for ok in results if ok),
            failed=sum(1 for ok in results if not ok),
        )
        logger.info(
            f"Push notifications sent: {summary.succeeded} succeeded, {summary.failed} failed"
        )
        return summary

    async def send_welcome(self, subscription: DBSubscription) -> bool:
        """Send a test push to a new subscriber. Failures are logged, not raised."""
        if self.transport is None:
            logger.warning("Push transport not configured, skipping welcome notification")
            return False
        return await self._dispatch(subscription, encode_payload(build_welcome_payload(self.icon)))

    async def _dispatch(self, subscription: DBSubscription, payload: str) -> bool:
        try:
            await self.transport.send(
                subscription.endpoint, subscription.auth, subscription.p256dh, payload
            )
            return True
        except DispatchFailure as e:
            logger.warning(
                f"Push to subscription {subscription.id} failed"
                f"{f' (HTTP {e.status})' if e.status else ''}: {e}"
            )
            return False
        except Exception as e:
            logger.warning(f"Push to subscription {subscription.id} failed: {e}")
            return False
