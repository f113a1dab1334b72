import asyncio
import logging
from typing import Optional, Protocol, Sequence

from app.config import settings
from app.schemas.push import DispatchResult, NotificationPayload
from app.services.credentials import CredentialProvider, DeliveryCredential
from app.services.exceptions import DeliveryAttemptFailed
from app.utils.batching import chunked, unique_tokens

logger = logging.getLogger(__name__)


class PushGateway(Protocol):
    async def send(self, token: str, payload: NotificationPayload, credential: DeliveryCredential) -> str: ...


class DispatchEngine:
    """Delivers one notification to every token, a chunk at a time.

    Attempts inside a chunk run concurrently; the next chunk starts only once
    every attempt of the current one has settled. A failing token is counted,
    never raised.
    """

    def __init__(
        self,
        credential_provider: CredentialProvider,
        gateway: PushGateway,
        chunk_size: int = settings.PUSH_CHUNK_SIZE,
    ):
        if chunk_size < 1:
            raise ValueError("chunk_size must be at least 1")
        self._credential_provider = credential_provider
        self._gateway = gateway
        self.chunk_size = chunk_size

    async def dispatch(self, tokens: Sequence[Optional[str]], payload: NotificationPayload) -> DispatchResult:
        if not tokens:
            logger.info("Dispatch skipped; audience resolved to no device tokens.")
            return DispatchResult.skipped_result()

        unique = unique_tokens(tokens)
        if not unique:
            logger.info("Dispatch skipped; %s tokens were all empty.", len(tokens))
            return DispatchResult.skipped_result()

        credential = await asyncio.to_thread(self._credential_provider.acquire_delivery_credential)

        logger.info("Sending push notification to %s tokens title=%s", len(unique), payload.title)
        sent = 0
        failed = 0
        for index, chunk in enumerate(chunked(unique, self.chunk_size), start=1):
            outcomes = await asyncio.gather(*(self._attempt(token, payload, credential) for token in chunk))
            chunk_sent = sum(1 for delivered in outcomes if delivered)
            sent += chunk_sent
            failed += len(outcomes) - chunk_sent
            logger.debug("Chunk %s settled: success=%s failure=%s", index, chunk_sent, len(outcomes) - chunk_sent)

        logger.info("Push result success=%s failure=%s total=%s", sent, failed, len(unique))
        return DispatchResult(sent=sent, failed=failed, total_tokens=len(unique))

    async def _attempt(self, token: str, payload: NotificationPayload, credential: DeliveryCredential) -> bool:
        try:
            await self._gateway.send(token, payload, credential)
        except DeliveryAttemptFailed as exc:
            logger.warning(
                "Token %s failed: %s (status=%s code=%s)",
                token[:12],
                exc.message,
                exc.status_code,
                exc.error_code,
            )
            return False
        except Exception:
            logger.exception("Unexpected error delivering to token %s", token[:12])
            return False
        logger.debug("Token %s delivered", token[:12])
        return True
