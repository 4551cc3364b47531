"""Profile repository contract, the in-memory store and the backend factory."""
from __future__ import annotations

from collections.abc import Callable
import copy
import logging
import threading
from typing import TYPE_CHECKING, Any, Protocol, TypeVar
import uuid

from wellness.models.profile import User
from wellness.services.errors import NotFoundError, StoreError

if TYPE_CHECKING:  # pragma: no cover - for static type checking only
    from wellness.config import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ProfileRepository(Protocol):
    """Contract for persisting user profiles and their saved tips."""

    def create_user(self, user: User) -> User:
        """Insert ``user`` under a freshly generated id and return the stored copy."""

    def get_user(self, user_id: str) -> User | None:
        """Return the user or ``None`` when not found."""

    def update_user(self, user_id: str, mutate: Callable[[User], T]) -> T:
        """Load, mutate and write back one user atomically.

        ``mutate`` receives the current user and may be called more than once
        when the backend retries on contention. Raises ``NotFoundError`` when the
        user does not exist; nothing is written if ``mutate`` raises.
        """

    def close(self) -> None:
        """Release the underlying client or connection."""


class InMemoryProfileRepository:
    """Process-local repository used for tests and offline development."""

    def __init__(self) -> None:
        self._documents: dict[str, dict[str, Any]] = {}
        self._lock = threading.Lock()

    def create_user(self, user: User) -> User:
        user_id = uuid.uuid4().hex
        with self._lock:
            self._documents[user_id] = copy.deepcopy(user.to_document())
            return self._load(user_id)

    def get_user(self, user_id: str) -> User | None:
        with self._lock:
            if user_id not in self._documents:
                return None
            return self._load(user_id)

    def update_user(self, user_id: str, mutate: Callable[[User], T]) -> T:
        with self._lock:
            if user_id not in self._documents:
                raise NotFoundError(user_id)
            user = self._load(user_id)
            result = mutate(user)
            user.touch()
            self._documents[user_id] = copy.deepcopy(user.to_document())
            return result

    def close(self) -> None:
        with self._lock:
            self._documents.clear()

    def __len__(self) -> int:
        return len(self._documents)

    def _load(self, user_id: str) -> User:
        document = copy.deepcopy(self._documents[user_id])
        document["id"] = user_id
        return User.from_document(document)


def create_repository(settings: "Settings") -> ProfileRepository:
    """Resolve the profile repository configured by ``settings.storage``."""

    storage = settings.storage
    logger.info("Initialising profile repository", extra={"event": "store.init", "storage": storage})

    if storage == "memory":
        return InMemoryProfileRepository()

    if storage == "sqlite":
        from wellness.services.sqlite_repo import LocalSQLiteProfileRepository

        return LocalSQLiteProfileRepository(
            db_path=settings.db_path,
            table=settings.users_collection,
        )

    from google.auth.exceptions import DefaultCredentialsError

    from wellness.services.firestore import FirestoreProfileRepository

    try:
        return FirestoreProfileRepository.from_settings(settings)
    except DefaultCredentialsError as exc:
        logger.exception("Firestore client initialisation failed", extra={"event": "store.init_error"})
        raise StoreError("Document store credentials are not configured") from exc


__all__ = ["InMemoryProfileRepository", "ProfileRepository", "create_repository"]
