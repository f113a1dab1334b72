import asyncio
import logging
from typing import Any, Dict, Optional, Tuple

import httpx

from app.config import settings
from app.schemas.push import NotificationPayload
from app.services.credentials import DeliveryCredential
from app.services.exceptions import DeliveryAttemptFailed

logger = logging.getLogger(__name__)

FCM_ERROR_TYPE = "type.googleapis.com/google.firebase.fcm.v1.FcmError"


def build_http_client(
    timeout: float = settings.PUSH_REQUEST_TIMEOUT_SECONDS,
    max_connections: int = settings.PUSH_CHUNK_SIZE,
) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=timeout,
        limits=httpx.Limits(max_connections=max_connections, max_keepalive_connections=max_connections),
    )


def build_message(token: str, payload: NotificationPayload) -> Dict[str, Any]:
    """FCM v1 message for one device, always high priority with the default sound."""
    return {
        "message": {
            "token": token,
            "notification": {"title": payload.title, "body": payload.body},
            "data": payload.string_data(),
            "android": {"priority": "high", "notification": {"sound": "default"}},
            "apns": {
                "headers": {"apns-priority": "10"},
                "payload": {"aps": {"sound": "default"}},
            },
        }
    }


def _error_details(response: httpx.Response) -> Tuple[str, Optional[str]]:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase, None
    error = (body.get("error") if isinstance(body, dict) else None) or {}
    if not isinstance(error, dict):
        return str(error), None

    error_code = error.get("status")
    for detail in error.get("details") or []:
        if isinstance(detail, dict) and detail.get("@type") == FCM_ERROR_TYPE and detail.get("errorCode"):
            error_code = detail["errorCode"]
            break
    return error.get("message") or response.reason_phrase, error_code


class FcmPushGateway:
    """Sends one message per device token through the FCM HTTP v1 API."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        base_url: str = settings.FCM_BASE_URL,
        request_timeout: float = settings.PUSH_REQUEST_TIMEOUT_SECONDS,
    ):
        self._client = client
        self._base_url = base_url.rstrip("/")
        # Overall deadline per attempt; httpx timeouts only bound each phase.
        self._request_timeout = request_timeout

    def send_url(self, project_id: str) -> str:
        return f"{self._base_url}/projects/{project_id}/messages:send"

    async def send(self, token: str, payload: NotificationPayload, credential: DeliveryCredential) -> str:
        """Deliver ``payload`` to ``token`` and return the FCM message name."""
        try:
            response = await asyncio.wait_for(
                self._client.post(
                    self.send_url(credential.project_id),
                    json=build_message(token, payload),
                    headers={"Authorization": f"Bearer {credential.access_token}"},
                ),
                timeout=self._request_timeout,
            )
        except asyncio.TimeoutError as exc:
            raise DeliveryAttemptFailed(token, f"No response within {self._request_timeout}s") from exc
        except httpx.HTTPError as exc:
            raise DeliveryAttemptFailed(token, f"{type(exc).__name__}: {exc}") from exc

        if not response.is_success:
            message, error_code = _error_details(response)
            raise DeliveryAttemptFailed(token, message, status_code=response.status_code, error_code=error_code)

        try:
            body = response.json()
        except ValueError:
            return ""
        return body.get("name", "") if isinstance(body, dict) else ""
