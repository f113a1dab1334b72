import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable, List, Optional, Protocol, Sequence, Tuple

from firebase_admin import firestore
from google.api_core import exceptions as google_exceptions
from google.cloud.firestore_v1.field_path import FieldPath
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from app.config import settings
from app.models.device_token import DeviceToken  # noqa: F401  (resolves User.device_tokens)
from app.models.user import User
from app.services.exceptions import StoreUnavailable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RecipientRecord:
    owner_id: str
    role: Optional[str]
    # Raw value of the record's token field; may be missing or malformed.
    tokens: Any


class RecipientStore(Protocol):
    max_lookup_ids: int

    def lookup_by_ids(self, owner_ids: Sequence[str]) -> List[RecipientRecord]: ...

    def query_by_field(self, field: str, value: Any) -> List[RecipientRecord]: ...

    def page_all(self, page_size: int, cursor: Any = None) -> Tuple[List[RecipientRecord], Any]: ...


class SqlRecipientStore:
    """Recipient lookups against the ``users`` / ``device_tokens`` tables."""

    queryable_fields = {"role", "email"}

    def __init__(
        self,
        session_factory: Callable[[], Session],
        max_lookup_ids: int = settings.STORE_LOOKUP_BATCH_SIZE,
    ):
        self._session_factory = session_factory
        self.max_lookup_ids = max_lookup_ids

    def lookup_by_ids(self, owner_ids: Sequence[str]) -> List[RecipientRecord]:
        if len(owner_ids) > self.max_lookup_ids:
            raise ValueError(f"At most {self.max_lookup_ids} owner ids per lookup")
        if not owner_ids:
            return []
        return self._fetch(lambda query: query.filter(User.id.in_(list(owner_ids))))

    def query_by_field(self, field: str, value: Any) -> List[RecipientRecord]:
        if field not in self.queryable_fields:
            raise ValueError(f"Unsupported recipient field: {field}")
        column = getattr(User, field)
        return self._fetch(lambda query: query.filter(column == value))

    def page_all(self, page_size: int, cursor: Any = None) -> Tuple[List[RecipientRecord], Any]:
        def _page(query):
            if cursor is not None:
                query = query.filter(User.id > cursor)
            return query.order_by(User.id).limit(page_size)

        records = self._fetch(_page)
        next_cursor = records[-1].owner_id if records else None
        return records, next_cursor

    def _fetch(self, build_query) -> List[RecipientRecord]:
        session = self._session_factory()
        try:
            query = session.query(User).options(selectinload(User.device_tokens))
            users = build_query(query).all()
            return [
                RecipientRecord(
                    owner_id=user.id,
                    role=user.role,
                    tokens=[device.token for device in user.device_tokens],
                )
                for user in users
            ]
        except SQLAlchemyError as exc:
            logger.exception("Recipient lookup failed")
            raise StoreUnavailable("Recipient store is unavailable") from exc
        finally:
            session.close()


class FirestoreRecipientStore:
    """Recipient lookups against a Firestore collection of user documents."""

    def __init__(
        self,
        client,
        collection: str = settings.RECIPIENTS_COLLECTION,
        tokens_field: str = settings.RECIPIENT_TOKENS_FIELD,
        max_lookup_ids: int = settings.STORE_LOOKUP_BATCH_SIZE,
    ):
        self._collection = client.collection(collection)
        self._tokens_field = tokens_field
        self.max_lookup_ids = max_lookup_ids

    def lookup_by_ids(self, owner_ids: Sequence[str]) -> List[RecipientRecord]:
        if len(owner_ids) > self.max_lookup_ids:
            raise ValueError(f"At most {self.max_lookup_ids} owner ids per lookup")
        if not owner_ids:
            return []
        refs = [self._collection.document(owner_id) for owner_id in owner_ids]
        query = self._collection.where(
            filter=firestore.FieldFilter(FieldPath.document_id(), "in", refs)
        )
        return [self._to_record(snapshot) for snapshot in self._stream(query)]

    def query_by_field(self, field: str, value: Any) -> List[RecipientRecord]:
        query = self._collection.where(filter=firestore.FieldFilter(field, "==", value))
        return [self._to_record(snapshot) for snapshot in self._stream(query)]

    def page_all(self, page_size: int, cursor: Any = None) -> Tuple[List[RecipientRecord], Any]:
        # The cursor is the last snapshot of the previous page.
        query = self._collection.order_by(FieldPath.document_id()).limit(page_size)
        if cursor is not None:
            query = query.start_after(cursor)
        snapshots = self._stream(query)
        next_cursor = snapshots[-1] if snapshots else None
        return [self._to_record(snapshot) for snapshot in snapshots], next_cursor

    @staticmethod
    def _stream(query) -> list:
        try:
            return list(query.stream())
        except google_exceptions.GoogleAPIError as exc:
            logger.exception("Firestore query failed")
            raise StoreUnavailable("Recipient store is unavailable") from exc

    def _to_record(self, snapshot) -> RecipientRecord:
        document = snapshot.to_dict() or {}
        return RecipientRecord(
            owner_id=snapshot.id,
            role=document.get("role"),
            tokens=document.get(self._tokens_field),
        )


def record_tokens(records: Iterable[RecipientRecord]) -> List[str]:
    """Flatten token lists, ignoring malformed token fields and entries."""
    tokens: List[str] = []
    for record in records:
        if not isinstance(record.tokens, list):
            if record.tokens is not None:
                logger.debug("Ignoring non-list token field for owner %s", record.owner_id)
            continue
        tokens.extend(token for token in record.tokens if isinstance(token, str))
    return tokens
