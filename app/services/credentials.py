import logging
import os
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional, Protocol

from firebase_admin import credentials
from google.auth import exceptions as google_auth_exceptions

from app.config import settings
from app.services.exceptions import CredentialAcquisitionFailed

logger = logging.getLogger(__name__)

TOKEN_URI = "https://oauth2.googleapis.com/token"


@dataclass(frozen=True)
class DeliveryCredential:
    access_token: str
    project_id: str
    expires_at: Optional[datetime] = None


class CredentialProvider(Protocol):
    def acquire_delivery_credential(self) -> DeliveryCredential: ...


def load_certificate() -> credentials.Certificate:
    """Build the service-account certificate from a key file or discrete env vars."""
    credentials_file = settings.FIREBASE_CREDENTIALS_FILE
    if credentials_file and os.path.exists(credentials_file):
        return credentials.Certificate(credentials_file)

    if not (settings.FIREBASE_PROJECT_ID and settings.FIREBASE_CLIENT_EMAIL and settings.FIREBASE_PRIVATE_KEY):
        raise CredentialAcquisitionFailed("Missing Firebase service account env vars")

    return credentials.Certificate(
        {
            "type": "service_account",
            "project_id": settings.FIREBASE_PROJECT_ID,
            "client_email": settings.FIREBASE_CLIENT_EMAIL,
            "private_key": settings.FIREBASE_PRIVATE_KEY,
            "token_uri": TOKEN_URI,
        }
    )


class FirebaseCredentialProvider:
    """Mints an OAuth2 access token for the FCM HTTP v1 API."""

    def __init__(
        self,
        certificate_loader: Callable[[], credentials.Certificate] = load_certificate,
        project_id: Optional[str] = None,
    ):
        self._certificate_loader = certificate_loader
        self._project_id = project_id

    def acquire_delivery_credential(self) -> DeliveryCredential:
        try:
            certificate = self._certificate_loader()
            token_info = certificate.get_access_token()
        except CredentialAcquisitionFailed:
            raise
        except (ValueError, OSError, google_auth_exceptions.GoogleAuthError) as exc:
            logger.exception("Could not obtain FCM access token")
            raise CredentialAcquisitionFailed(f"Failed to obtain access token: {exc}") from exc

        if not token_info.access_token:
            raise CredentialAcquisitionFailed("Failed to obtain access token")

        project_id = self._project_id or certificate.project_id
        if not project_id:
            raise CredentialAcquisitionFailed("Firebase project id is not configured")

        logger.info("Acquired FCM access token for project %s", project_id)
        return DeliveryCredential(
            access_token=token_info.access_token,
            project_id=project_id,
            expires_at=token_info.expiry,
        )
