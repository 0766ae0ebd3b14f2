"""
Subscription repository - Web Push subscriptions and their notification settings.
"""

from datetime import datetime

from .connection import DatabaseConnection
from .converters import row_to_subscription
from .models import DBSubscription

POLICY_OPT_OUT = "opt_out"
POLICY_OPT_IN = "opt_in"

_SELECT_WITH_SETTINGS = """
    SELECT s.*, ns.newsletter_notifications
    FROM subscriptions s
    LEFT JOIN notification_settings ns ON ns.subscription_id = s.id
"""


class SubscriptionRepository:
    """Repository for push subscription operations."""

    def __init__(self, db: DatabaseConnection):
        self._db = db

    def add(self, endpoint: str, auth: str, p256dh: str) -> int:
        """
        Store a subscription, refreshing keys if the endpoint is already known.

        New subscriptions get a settings row with notifications enabled.
        Returns subscription ID.
        """
        with self._db.conn() as conn:
            conn.execute(
                """INSERT INTO subscriptions (endpoint, auth, p256dh)
                   VALUES (?, ?, ?)
                   ON CONFLICT(endpoint) DO UPDATE SET
                   auth = excluded.auth, p256dh = excluded.p256dh""",
                (endpoint, auth, p256dh)
            )
            subscription_id = conn.execute(
                "SELECT id FROM subscriptions WHERE endpoint = ?", (endpoint,)
            ).fetchone()["id"]
            conn.execute(
                """INSERT OR IGNORE INTO notification_settings
                   (subscription_id, newsletter_notifications)
                   VALUES (?, 1)""",
                (subscription_id,)
            )
            return subscription_id

    def get(self, subscription_id: int) -> DBSubscription | None:
        """Get a single subscription with its settings."""
        with self._db.conn() as conn:
            row = conn.execute(
                _SELECT_WITH_SETTINGS + " WHERE s.id = ?", (subscription_id,)
            ).fetchone()
            return row_to_subscription(row) if row else None

    def get_all(self) -> list[DBSubscription]:
        """Get every subscription regardless of settings."""
        with self._db.conn() as conn:
            rows = conn.execute(_SELECT_WITH_SETTINGS + " ORDER BY s.id").fetchall()
            return [row_to_subscription(row) for row in rows]

    def get_active(self, policy: str = POLICY_OPT_OUT) -> list[DBSubscription]:
        """
        Get subscriptions that should receive newsletter notifications.

        With the opt-out policy, a subscription lacking a settings row counts
        as active. With opt-in, it needs an explicit enabled row.
        """
        if policy == POLICY_OPT_IN:
            condition = "ns.newsletter_notifications = 1"
        else:
            condition = "COALESCE(ns.newsletter_notifications, 1) = 1"
        with self._db.conn() as conn:
            rows = conn.execute(
                _SELECT_WITH_SETTINGS + f" WHERE {condition} ORDER BY s.id"
            ).fetchall()
            return [row_to_subscription(row) for row in rows]

    def set_notifications_enabled(self, subscription_id: int, enabled: bool):
        """Create or update the settings row for a subscription."""
        with self._db.conn() as conn:
            conn.execute(
                """INSERT INTO notification_settings
                   (subscription_id, newsletter_notifications, updated_at)
                   VALUES (?, ?, ?)
                   ON CONFLICT(subscription_id) DO UPDATE SET
                   newsletter_notifications = excluded.newsletter_notifications,
                   updated_at = excluded.updated_at""",
                (subscription_id, 1 if enabled else 0, datetime.now().isoformat())
            )

    def delete(self, subscription_id: int):
        """Remove a subscription and its settings."""
        with self._db.conn() as conn:
            conn.execute("DELETE FROM subscriptions WHERE id = ?", (subscription_id,))
