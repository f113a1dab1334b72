import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Union

from app.config import settings
from app.schemas.push import PushSendRequest
from app.services.exceptions import InvalidDispatchRequest
from app.services.recipient_store import RecipientStore, record_tokens
from app.utils.batching import chunked, unique_tokens

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExplicitTokens:
    tokens: Sequence[Optional[str]]


@dataclass(frozen=True)
class OwnerIds:
    owner_ids: Sequence[Optional[str]]


@dataclass(frozen=True)
class Role:
    role: str


@dataclass(frozen=True)
class AllUsers:
    pass


AudienceSelector = Union[ExplicitTokens, OwnerIds, Role, AllUsers]


def selector_from_request(body: PushSendRequest) -> AudienceSelector:
    """Pick the audience selector of a send request.

    Precedence is explicit tokens, then owner ids, then role, then everyone.
    Any lower-precedence selector present alongside the winner is ignored.
    """
    candidates: List[AudienceSelector] = []
    if body.tokens:
        candidates.append(ExplicitTokens(list(body.tokens)))
    if body.user_ids:
        candidates.append(OwnerIds(list(body.user_ids)))
    if body.role:
        candidates.append(Role(body.role))
    if body.all:
        candidates.append(AllUsers())

    if not candidates:
        raise InvalidDispatchRequest("No target provided")
    if len(candidates) > 1:
        logger.warning(
            "Multiple audience selectors supplied; using %s and ignoring %s",
            type(candidates[0]).__name__,
            ", ".join(type(ignored).__name__ for ignored in candidates[1:]),
        )
    return candidates[0]


class AudienceResolver:
    """Turns an audience selector into the device tokens to push to.

    Tokens are not deduplicated across records here; the dispatch engine does
    that for every selector kind.
    """

    def __init__(self, store: RecipientStore, page_size: int = settings.STORE_PAGE_SIZE, role_field: str = "role"):
        if page_size < 1:
            raise ValueError("page_size must be at least 1")
        self._store = store
        self._page_size = page_size
        self._role_field = role_field

    def resolve(self, selector: AudienceSelector) -> List[Optional[str]]:
        if isinstance(selector, ExplicitTokens):
            return self.resolve_explicit(selector.tokens)
        if isinstance(selector, OwnerIds):
            return self.resolve_by_owner_ids(selector.owner_ids)
        if isinstance(selector, Role):
            return self.resolve_by_role(selector.role)
        if isinstance(selector, AllUsers):
            return self.resolve_all()
        raise InvalidDispatchRequest(f"Unknown audience selector: {selector!r}")

    @staticmethod
    def resolve_explicit(tokens: Sequence[Optional[str]]) -> List[Optional[str]]:
        return list(tokens)

    def resolve_by_owner_ids(self, owner_ids: Sequence[Optional[str]]) -> List[str]:
        ids = unique_tokens(owner_ids)
        tokens: List[str] = []
        for batch in chunked(ids, self._store.max_lookup_ids):
            tokens.extend(record_tokens(self._store.lookup_by_ids(batch)))
        logger.info("Resolved %s tokens for %s owner ids", len(tokens), len(ids))
        return tokens

    def resolve_by_role(self, role: str) -> List[str]:
        tokens = record_tokens(self._store.query_by_field(self._role_field, role))
        logger.info("Resolved %s tokens for role=%s", len(tokens), role)
        return tokens

    def resolve_all(self) -> List[str]:
        tokens: List[str] = []
        cursor = None
        pages = 0
        while True:
            records, next_cursor = self._store.page_all(self._page_size, cursor)
            if not records:
                break
            pages += 1
            tokens.extend(record_tokens(records))
            if next_cursor is None or next_cursor == cursor:
                break
            cursor = next_cursor
        logger.info("Resolved %s tokens across %s pages of recipients", len(tokens), pages)
        return tokens
