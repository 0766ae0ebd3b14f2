"""
Push subscription routes: subscribe, settings, unsubscribe, VAPID public key.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException

from ..config import config, get_db, state
from ..database import Database
from ..exceptions import require_subscription
from ..schemas import NotificationSettingsRequest, SubscribeRequest, SubscriptionResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["subscriptions"])


@router.get("/push/public-key")
async def vapid_public_key() -> dict:
    """VAPID public key the browser needs for pushManager.subscribe()."""
    if not config.VAPID_PUBLIC_KEY:
        raise HTTPException(status_code=503, detail="Push notifications are not configured")
    return {"public_key": config.VAPID_PUBLIC_KEY}


@router.post("/subscriptions", status_code=201)
async def subscribe(
    request: SubscribeRequest,
    db: Annotated[Database, Depends(get_db)],
) -> SubscriptionResponse:
    """
    Store a push subscription and send a welcome notification.

    The subscription is kept even if the welcome push fails.
    """
    subscription_id = db.add_subscription(
        endpoint=request.endpoint,
        auth=request.keys.auth,
        p256dh=request.keys.p256dh,
    )
    subscription = require_subscription(db.get_subscription(subscription_id))

    welcome_sent = False
    if state.notifier:
        try:
            welcome_sent = await state.notifier.send_welcome(subscription)
        except Exception as e:
            logger.warning(f"Welcome notification failed for subscription {subscription_id}: {e}")

    return SubscriptionResponse.from_db(subscription, welcome_sent=welcome_sent)


@router.put("/subscriptions/{subscription_id}/settings")
async def update_settings(
    subscription_id: int,
    request: NotificationSettingsRequest,
    db: Annotated[Database, Depends(get_db)],
) -> SubscriptionResponse:
    """Turn newsletter notifications on or off for a subscription."""
    require_subscription(db.get_subscription(subscription_id))
    db.set_notifications_enabled(subscription_id, request.newsletter_notifications)
    return SubscriptionResponse.from_db(require_subscription(db.get_subscription(subscription_id)))


@router.delete("/subscriptions/{subscription_id}")
async def unsubscribe(
    subscription_id: int,
    db: Annotated[Database, Depends(get_db)],
) -> dict:
    """Remove a subscription."""
    require_subscription(db.get_subscription(subscription_id))
    db.delete_subscription(subscription_id)
    return {"success": True}
