"""
Push delivery for challenge events.

Two transports, both best-effort:

- Expo push API for mobile device tokens (ExponentPushToken[...]).
- Web Push (VAPID) for browser/PWA subscriptions.

Setup for Web Push:
1. Generate VAPID keys: npx web-push generate-vapid-keys
2. Set in .env:
   VAPID_PUBLIC_KEY=your_public_key
   VAPID_PRIVATE_KEY=your_private_key
   VAPID_CONTACT_EMAIL=admin@triviaduel.app

Failures are logged and returned as result dicts; nothing here raises into a
request handler, because the state transition that triggered the push is
already committed.
"""
import json
import logging
from typing import Optional, List, Dict, Any

import httpx
from pywebpush import webpush, WebPushException

from triviaduel.config import get_settings
from triviaduel.models.user import User

settings = get_settings()
logger = logging.getLogger(__name__)


def is_expo_push_token(token: Optional[str]) -> bool:
    return bool(token) and (
        token.startswith("ExponentPushToken[") or token.startswith("ExpoPushToken[")
    ) and token.endswith("]")


class ExpoPushService:
    """Expo push API client for React Native device tokens."""

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.url = settings.expo_push_url
        self.transport = transport
        self.headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        if settings.expo_access_token:
            self.headers["Authorization"] = f"Bearer {settings.expo_access_token}"

    async def send_notification(
        self,
        token: str,
        title: str,
        body: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> dict:
        """
        Send a push message to one Expo device token.

        Returns:
            dict with success status; `should_remove` is set when Expo reports
            the device is no longer registered.
        """
        if not is_expo_push_token(token):
            logger.error(f"Push token {token} is not a valid Expo push token")
            return {"success": False, "error": "invalid_token", "should_remove": True}

        message = {
            "to": token,
            "sound": "default",
            "title": title,
            "body": body,
            "data": data or {},
        }

        async with httpx.AsyncClient(transport=self.transport) as client:
            try:
                response = await client.post(
                    self.url, json=[message], headers=self.headers, timeout=10.0
                )
                response.raise_for_status()
                tickets = response.json().get("data", [])
            except httpx.HTTPStatusError as e:
                logger.warning(f"Expo push rejected: {e.response.status_code}")
                return {"success": False, "error": f"http_{e.response.status_code}"}
            except httpx.RequestError as e:
                logger.warning(f"Expo push connection error: {e}")
                return {"success": False, "error": "connection_error"}

        ticket = tickets[0] if tickets else {}
        if ticket.get("status") == "error":
            error = ticket.get("details", {}).get("error", ticket.get("message", "unknown"))
            logger.warning(f"Expo push ticket error: {error}")
            return {
                "success": False,
                "error": error,
                "should_remove": error == "DeviceNotRegistered",
            }

        return {"success": True, "ticket_id": ticket.get("id")}


class WebPushService:
    """
    Web Push API service using VAPID authentication.

    Works with any modern browser (Chrome, Firefox, Edge, Safari 16+).
    """

    def __init__(self):
        self.vapid_private_key = settings.vapid_private_key
        self.vapid_public_key = settings.vapid_public_key
        self.vapid_email = settings.vapid_contact_email
        self.initialized = bool(self.vapid_private_key and self.vapid_public_key)

        if not self.initialized:
            logger.info("[PUSH] VAPID keys not configured, web push disabled")

    def get_public_key(self) -> Optional[str]:
        """Get VAPID public key for frontend subscription"""
        return self.vapid_public_key if self.initialized else None

    async def send_notification(
        self,
        subscription: Dict[str, Any],
        title: str,
        body: str,
        url: Optional[str] = None,
        tag: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None
    ) -> dict:
        """
        Send push notification to a single subscription.

        Args:
            subscription: Push subscription object from frontend
                {"endpoint": "https://...", "keys": {"p256dh": "...", "auth": "..."}}
            title: Notification title
            body: Notification body text
            url: URL to open when notification clicked
            tag: Tag for grouping/replacing notifications
            data: Additional data payload
        """
        if not self.initialized:
            logger.debug(f"[PUSH] Not initialized - would send: {title}")
            return {"success": False, "error": "Push service not configured"}

        try:
            payload = json.dumps({
                "title": title,
                "body": body,
                "url": url or "/",
                "tag": tag,
                "data": data or {}
            })

            webpush(
                subscription_info=subscription,
                data=payload,
                vapid_private_key=self.vapid_private_key,
                vapid_claims={
                    "sub": f"mailto:{self.vapid_email}"
                }
            )

            return {"success": True}

        except WebPushException as e:
            # Handle expired/invalid subscriptions
            if e.response is not None and e.response.status_code in [404, 410]:
                return {
                    "success": False,
                    "error": "subscription_expired",
                    "should_remove": True
                }

            logger.warning(f"[PUSH] WebPush error: {e}")
            return {"success": False, "error": str(e)}


# Singleton instances
expo_push_service = ExpoPushService()
web_push_service = WebPushService()


async def deliver_push(
    user: Optional[User],
    title: str,
    body: str,
    data: Optional[Dict[str, Any]] = None,
) -> List[dict]:
    """
    Deliver one push to every transport the user registered.

    Never raises; each transport's outcome is returned for logging.
    """
    if user is None or not user.push_enabled:
        return []

    results = []
    if user.push_token:
        results.append(
            await expo_push_service.send_notification(user.push_token, title, body, data)
        )
    if user.push_subscription:
        try:
            subscription = json.loads(user.push_subscription)
        except ValueError:
            logger.warning(f"[PUSH] Stored subscription for {user.id} is not valid JSON")
        else:
            results.append(
                await web_push_service.send_notification(
                    subscription, title, body,
                    tag=(data or {}).get("challenge_id"),
                    data=data,
                )
            )

    for result in results:
        if not result.get("success"):
            logger.warning(f"[PUSH] Delivery to {user.id} failed: {result.get('error')}")
    return results


# Notification helpers for challenge events

async def notify_challenge_received_push(
    user: Optional[User],
    challenger_username: str,
    category: str,
    challenge_id: str,
):
    """Send push when a user is challenged"""
    return await deliver_push(
        user,
        title="New Challenge!",
        body=f"{challenger_username} challenged you to a {category} quiz!",
        data={"type": "challenge_received", "challenge_id": challenge_id},
    )


async def notify_challenge_accepted_push(
    user: Optional[User],
    opponent_username: str,
    challenge_id: str,
):
    """Send push to the challenger when the invite is accepted"""
    return await deliver_push(
        user,
        title="Challenge Accepted!",
        body=f"{opponent_username} accepted your challenge!",
        data={"type": "challenge_accepted", "challenge_id": challenge_id},
    )


async def notify_challenge_rejected_push(
    user: Optional[User],
    opponent_username: str,
    challenge_id: str,
):
    """Send push to the challenger when the invite is declined"""
    return await deliver_push(
        user,
        title="Challenge Rejected",
        body=f"{opponent_username} rejected your challenge",
        data={"type": "challenge_rejected", "challenge_id": challenge_id},
    )


async def notify_challenge_completed_push(
    user: Optional[User],
    opponent_username: str,
    challenge_id: str,
    my_score: int,
    opponent_score: int,
):
    """Send push when the last score lands and the winner is known"""
    return await deliver_push(
        user,
        title="Challenge Completed!",
        body=f"{opponent_username} finished: {my_score} - {opponent_score}",
        data={"type": "challenge_completed", "challenge_id": challenge_id},
    )
