import asyncio
import logging
from typing import Any, Dict, Optional

from pydantic import ValidationError

from app.core.exceptions import PersistenceError
from app.providers.documents import DocumentStore
from app.providers.identity import Identity
from app.schemas.base import utcnow
from app.schemas.user import BrandKit, SubscriptionInfo, UsageInfo, User

logger = logging.getLogger(__name__)


class UserService:
    """User documents in the `users` collection, keyed by identity uid."""

    def __init__(self, document_store: DocumentStore):
        self.document_store = document_store
        self.collection_name = "users"
        self._creation_locks: Dict[str, asyncio.Lock] = {}

    @staticmethod
    def _to_document(user: User, fields=None) -> Dict[str, Any]:
        return user.model_dump(by_alias=True, exclude={"uid"}, include=fields)

    async def _read(self, uid: str) -> Optional[Dict[str, Any]]:
        try:
            return await self.document_store.get(self.collection_name, uid)
        except Exception as e:
            logger.error(f"Error reading user document {uid}: {e}")
            raise PersistenceError() from e

    async def _write(self, uid: str, record: Dict[str, Any], merge: bool = False) -> None:
        try:
            await self.document_store.set(self.collection_name, uid, record, merge=merge)
        except Exception as e:
            logger.error(f"Error writing user document {uid}: {e}")
            raise PersistenceError() from e

    @staticmethod
    def _from_document(uid: str, doc: Dict[str, Any]) -> User:
        try:
            return User.model_validate({**doc, "uid": uid})
        except ValidationError as e:
            logger.error(f"User document {uid} is malformed: {e}")
            raise PersistenceError() from e

    async def get(self, uid: str) -> Optional[User]:
        doc = await self._read(uid)
        if doc is None:
            return None
        return self._from_document(uid, doc)

    async def get_or_create(self, identity: Identity, extra: Optional[Dict[str, Any]] = None) -> User:
        """
        Return the user for an identity, creating the document on first sight.

        Extra fields only apply when the document is created; an existing
        profile is never overwritten here.
        """
        lock = self._creation_locks.setdefault(identity.uid, asyncio.Lock())
        async with lock:
            doc = await self._read(identity.uid)
            if doc is not None:
                return self._from_document(identity.uid, doc)

            now = utcnow()
            data: Dict[str, Any] = {
                "uid": identity.uid,
                "email": identity.email,
                "display_name": identity.display_name or identity.email.split("@")[0],
                "photo_url": identity.photo_url,
                "subscription": SubscriptionInfo(current_period_end=now),
                "usage": UsageInfo(last_reset=now),
                "brand_kit": BrandKit(),
                "created_at": now,
                "updated_at": now,
            }
            data.update(extra or {})
            try:
                user = User.model_validate(data)
            except ValidationError as e:
                logger.error(f"Cannot build user document for {identity.uid}: {e}")
                raise PersistenceError() from e

            await self._write(identity.uid, self._to_document(user))
            logger.info(f"Created user document for {identity.uid}")
            return user

    async def update(self, user: User, updates: Dict[str, Any]) -> User:
        """
        Merge top-level fields into the stored document and return the merged user.

        `updatedAt` is always stamped.
        """
        data = user.model_dump()
        data.update(updates)
        data["updated_at"] = utcnow()
        try:
            merged = User.model_validate(data)
        except ValidationError as e:
            logger.error(f"Invalid profile update for {user.uid}: {e}")
            raise PersistenceError("Invalid profile update.") from e

        fields = set(updates) | {"updated_at"}
        await self._write(user.uid, self._to_document(merged, fields), merge=True)
        return merged

    async def update_subscription(self, uid: str, fields: Dict[str, Any]) -> Optional[User]:
        """Patch the subscription of a stored user. Returns None if there is no such user."""
        user = await self.get(uid)
        if user is None:
            logger.warning(f"No user document for {uid}; subscription update dropped")
            return None
        subscription = user.subscription.model_copy(update=fields)
        return await self.update(user, {"subscription": subscription.model_dump()})

    async def find_uid_by_customer(self, customer_id: str) -> Optional[str]:
        try:
            found = await self.document_store.find_one(self.collection_name, "subscription.customerId", customer_id)
        except Exception as e:
            logger.error(f"Error looking up customer {customer_id}: {e}")
            raise PersistenceError() from e
        return found[0] if found else None
