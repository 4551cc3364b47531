"""Firestore data access helpers for user profiles and saved tips."""
from __future__ import annotations

from collections.abc import Callable
import logging
import re
from typing import TYPE_CHECKING, Any, Final, TypeVar

from google.api_core.exceptions import GoogleAPIError
from google.cloud import firestore
from google.cloud.firestore import Client, CollectionReference, DocumentReference, transactional

from wellness.models.profile import User
from wellness.services.errors import NotFoundError, StoreError

if TYPE_CHECKING:  # pragma: no cover - for static type checking only
    from wellness.config import Settings

DEFAULT_USERS_COLLECTION: Final[str] = "users"
_RESERVED_ID: Final[re.Pattern[str]] = re.compile(r"__.*__|\.{1,2}")

logger = logging.getLogger(__name__)

T = TypeVar("T")


class FirestoreProfileRepository:
    """Repository that encapsulates all Firestore access for the ``users`` collection."""

    def __init__(
        self,
        client: Client | None = None,
        *,
        user_collection: str = DEFAULT_USERS_COLLECTION,
    ) -> None:
        self._client = client or firestore.Client()
        self._user_collection_name = user_collection

    @classmethod
    def from_settings(cls, settings: "Settings") -> "FirestoreProfileRepository":
        """Create a client bound to the configured project and optional database."""

        client_kwargs: dict[str, Any] = {}
        if settings.firestore_project:
            client_kwargs["project"] = settings.firestore_project
        if settings.firestore_database:
            client_kwargs["database"] = settings.firestore_database
        return cls(firestore.Client(**client_kwargs), user_collection=settings.users_collection)

    @property
    def client(self) -> Client:
        return self._client

    @property
    def user_collection(self) -> CollectionReference:
        return self._client.collection(self._user_collection_name)

    # ------------------------------------------------------------------
    # Profile helpers
    # ------------------------------------------------------------------
    def create_user(self, user: User) -> User:
        """Persist a new profile under an auto-generated document ID."""

        document = self.user_collection.document()
        try:
            document.set(user.to_document())
            stored = document.get()
        except GoogleAPIError as exc:
            raise _store_error("create", exc) from exc
        return User.from_document(stored)

    def get_user(self, user_id: str) -> User | None:
        """Retrieve a single profile by its Firestore document ID."""

        document = self._document(user_id)
        if document is None:
            return None
        try:
            snapshot = document.get()
        except GoogleAPIError as exc:
            raise _store_error("read", exc) from exc
        if not snapshot.exists:
            return None
        return User.from_document(snapshot)

    def update_user(self, user_id: str, mutate: Callable[[User], T]) -> T:
        """Run ``mutate`` inside a Firestore transaction and write the result back.

        Firestore retries the transaction when the document changed underneath
        it, so ``mutate`` always sees the latest stored goals.
        """

        document = self._document(user_id)
        if document is None:
            raise NotFoundError(user_id)

        def _apply(transaction: Any) -> T:
            snapshot = document.get(transaction=transaction)
            if not snapshot.exists:
                raise NotFoundError(user_id)
            user = User.from_document(snapshot)
            result = mutate(user)
            user.touch()
            transaction.set(document, user.to_document())
            return result

        try:
            return transactional(_apply)(self._client.transaction())
        except (GoogleAPIError, ValueError) as exc:
            # ValueError: the client gave up after repeated commit contention.
            raise _store_error("update", exc) from exc

    def close(self) -> None:
        self._client.close()

    def _document(self, user_id: str) -> DocumentReference | None:
        # A slash would address a nested path; reserved ids are rejected by Firestore.
        if not user_id or "/" in user_id or _RESERVED_ID.fullmatch(user_id):
            return None
        return self.user_collection.document(user_id)


def _store_error(operation: str, exc: Exception) -> StoreError:
    logger.exception(
        "Firestore %s failed",
        operation,
        extra={"event": "store.error", "backend": "firestore", "operation": operation},
    )
    return StoreError(f"Firestore {operation} failed")
