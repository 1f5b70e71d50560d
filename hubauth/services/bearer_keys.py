"""Administrative bearer key management."""

from typing import List

from hubauth.core.exceptions import AlreadyExistsError, NotFoundError
from hubauth.core.guards import guard_not_found
from hubauth.core.logging import get_logger
from hubauth.dao.bearer_keys import BearerKeyDao
from hubauth.models.domain import BearerKey
from hubauth.models.requests import BearerKeyCreateRequest, BearerKeyUpdateRequest

logger = get_logger(__name__)


class BearerKeyService:
    """CRUD for bearer keys. Enabled keys never share a token value."""

    def __init__(self, bearer_keys: BearerKeyDao):
        self.bearer_keys = bearer_keys

    async def _ensure_token_unique(self, key_id: str | None, token: str, enabled: bool) -> None:
        if not enabled:
            return
        for other in await self.bearer_keys.find_all_by_token(token):
            if other.enabled and other.id != key_id:
                raise AlreadyExistsError("An enabled bearer key with this token already exists")

    async def list_keys(self) -> List[BearerKey]:
        return await self.bearer_keys.find_all()

    async def get_key(self, key_id: str) -> BearerKey:
        with guard_not_found(await self.bearer_keys.find_by_id(key_id), "Bearer key not found") as key:
            return key

    async def create_key(self, request: BearerKeyCreateRequest) -> BearerKey:
        async with self.bearer_keys.write_lock:
            await self._ensure_token_unique(None, request.token, request.enabled)
            key = await self.bearer_keys.create(request.model_dump())
        logger.info("bearer_key_registered", key_id=key.id, access_type=key.access_type.value)
        return key

    async def update_key(self, key_id: str, request: BearerKeyUpdateRequest) -> BearerKey:
        changes = request.model_dump(exclude_unset=True, exclude_none=True)
        async with self.bearer_keys.write_lock:
            existing = await self.get_key(key_id)
            token = changes.get("token", existing.token)
            enabled = changes.get("enabled", existing.enabled)
            await self._ensure_token_unique(key_id, token, enabled)

            updated = await self.bearer_keys.update(key_id, changes)
        if updated is None:
            raise NotFoundError("Bearer key not found")
        logger.info("bearer_key_updated", key_id=key_id, fields=sorted(changes))
        return updated

    async def delete_key(self, key_id: str) -> None:
        if not await self.bearer_keys.delete(key_id):
            raise NotFoundError("Bearer key not found")
        logger.info("bearer_key_deleted", key_id=key_id)
