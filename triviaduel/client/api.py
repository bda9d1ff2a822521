import logging
from typing import Any, Dict, List, Optional

import httpx

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """A request reached the backend and failed."""

    def __init__(self, status_code: int, detail: str):
        super().__init__(f"{status_code}: {detail}")
        self.status_code = status_code
        self.detail = detail


class SessionExpired(ApiError):
    """401: the bearer token is invalid or the account is gone. Forces re-login."""


class NotFoundError(ApiError):
    """404: the challenge or notification does not exist (or no longer exists)."""


class NetworkError(ApiError):
    """The request never got a response (connect error, timeout). Retryable."""

    def __init__(self, detail: str):
        super().__init__(0, detail)


class TriviaDuelClient:
    """Async HTTP client for the TriviaDuel backend"""

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 10.0,
    ):
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._http = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            transport=transport,
            timeout=timeout,
        )

    async def __aenter__(self) -> "TriviaDuelClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    def set_token(self, token: str) -> None:
        self._http.headers["Authorization"] = f"Bearer {token}"

    async def _request(self, method: str, url: str, **kwargs) -> Any:
        logger.debug(f"[API Request] {method} {url}")
        try:
            response = await self._http.request(method, url, **kwargs)
        except httpx.RequestError as e:
            raise NetworkError(f"{type(e).__name__}: {e}") from e

        if response.status_code >= 400:
            try:
                detail = response.json().get("detail", response.text)
            except ValueError:
                detail = response.text
            if response.status_code == 401:
                raise SessionExpired(response.status_code, str(detail))
            if response.status_code == 404:
                raise NotFoundError(response.status_code, str(detail))
            raise ApiError(response.status_code, str(detail))

        return response.json()

    # Auth

    async def login(self, email: str, password: str) -> Dict[str, Any]:
        data = await self._request("POST", "/api/auth/login/json", json={"email": email, "password": password})
        self.set_token(data["access_token"])
        return data

    async def register(self, username: str, email: str, password: str) -> Dict[str, Any]:
        data = await self._request(
            "POST", "/api/auth/register",
            json={"username": username, "email": email, "password": password},
        )
        self.set_token(data["access_token"])
        return data

    # Challenges

    async def create_challenge(
        self, challenged_id: str, category: str, difficulty: str, score: Optional[int] = None
    ) -> Dict[str, Any]:
        body = {"challenged_id": challenged_id, "category": category, "difficulty": difficulty}
        if score is not None:
            body["score"] = score
        return await self._request("POST", "/api/social/challenge", json=body)

    async def accept_challenge(self, challenge_id: str) -> Dict[str, Any]:
        return await self._request("POST", "/api/social/challenge/accept", json={"challenge_id": challenge_id})

    async def reject_challenge(self, challenge_id: str) -> Dict[str, Any]:
        return await self._request("POST", "/api/social/challenge/reject", json={"challenge_id": challenge_id})

    async def complete_challenge(self, challenge_id: str, score: int) -> Dict[str, Any]:
        return await self._request(
            "POST", "/api/social/challenge/complete",
            json={"challenge_id": challenge_id, "score": score},
        )

    async def get_challenge_status(self, challenge_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/api/social/challenge/{challenge_id}/status")

    async def save_challenge_questions(self, challenge_id: str, questions: List[dict]) -> Dict[str, Any]:
        return await self._request(
            "POST", f"/api/social/challenge/{challenge_id}/questions",
            json={"questions": questions},
        )

    async def get_pending_challenges(self) -> List[Dict[str, Any]]:
        return await self._request("GET", "/api/social/challenges/pending")

    # Notifications

    async def get_notifications(self) -> List[Dict[str, Any]]:
        return await self._request("GET", "/api/social/notifications")

    async def mark_notification_read(self, notification_id: str) -> Dict[str, Any]:
        return await self._request("PUT", f"/api/social/notifications/{notification_id}/read")

    async def delete_notification(self, notification_id: str) -> bool:
        """Dismiss a notification. Returns False if it was already gone."""
        try:
            await self._request("DELETE", f"/api/social/notifications/{notification_id}")
        except NotFoundError:
            logger.debug(f"Notification {notification_id} already dismissed")
            return False
        return True

    # Friends

    async def accept_friend_request(self, user_id: str) -> Dict[str, Any]:
        return await self._request("POST", "/api/social/friend-accept", json={"user_id": user_id})
