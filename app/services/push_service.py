import logging
from typing import AsyncIterator

import firebase_admin
from fastapi import Request
from firebase_admin import firestore

from app.config import settings
from app.database import SessionLocal
from app.services.audience_resolver import AudienceResolver
from app.services.credentials import FirebaseCredentialProvider, load_certificate
from app.services.dispatch_engine import DispatchEngine
from app.services.firebase_service import FcmPushGateway, build_http_client
from app.services.recipient_store import FirestoreRecipientStore, RecipientStore, SqlRecipientStore

logger = logging.getLogger(__name__)

FIREBASE_APP_NAME = "push-dispatch"


def _firebase_app() -> firebase_admin.App:
    try:
        return firebase_admin.get_app(FIREBASE_APP_NAME)
    except ValueError:
        options = {"projectId": settings.FIREBASE_PROJECT_ID} if settings.FIREBASE_PROJECT_ID else None
        app = firebase_admin.initialize_app(load_certificate(), options, name=FIREBASE_APP_NAME)
        logger.info("Firebase app initialized for project %s", app.project_id)
        return app


def build_recipient_store() -> RecipientStore:
    backend = settings.RECIPIENT_STORE
    if backend == "firestore":
        logger.info("Using Firestore recipient store collection=%s", settings.RECIPIENTS_COLLECTION)
        return FirestoreRecipientStore(firestore.client(_firebase_app()))
    if backend == "sql":
        logger.info("Using SQL recipient store")
        return SqlRecipientStore(SessionLocal)
    raise ValueError(f"Unknown RECIPIENT_STORE backend: {backend}")


def build_credential_provider() -> FirebaseCredentialProvider:
    return FirebaseCredentialProvider(project_id=settings.FIREBASE_PROJECT_ID)


def get_audience_resolver(request: Request) -> AudienceResolver:
    return AudienceResolver(request.app.state.recipient_store)


async def get_dispatch_engine(request: Request) -> AsyncIterator[DispatchEngine]:
    async with build_http_client() as client:
        yield DispatchEngine(request.app.state.credential_provider, FcmPushGateway(client))
