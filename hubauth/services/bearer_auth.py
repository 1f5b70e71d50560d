"""Bearer key authorization."""

from typing import List, Optional

from hubauth.core.exceptions import PermissionDeniedError, UnauthorizedError
from hubauth.core.logging import get_logger
from hubauth.core.security import secure_compare
from hubauth.dao.bearer_keys import BearerKeyDao
from hubauth.models.domain import BearerKey, TargetType

logger = get_logger(__name__)


class BearerKeyAuthorizer:
    """Matches inbound bearer strings against enabled keys and their scoping."""

    def __init__(self, bearer_keys: BearerKeyDao):
        self.bearer_keys = bearer_keys

    async def _matches(self, token: str) -> List[BearerKey]:
        if not token:
            return []
        enabled = await self.bearer_keys.find_enabled()
        return [key for key in enabled if secure_compare(key.token, token)]

    async def authenticate(self, token: str) -> Optional[BearerKey]:
        """Return the enabled key whose token matches exactly.

        If several enabled keys share the token their scoping is ambiguous,
        so none of them authenticates.
        """
        matches = await self._matches(token)
        if len(matches) > 1:
            logger.warning("bearer_key_ambiguous", key_ids=[k.id for k in matches])
            return None
        return matches[0] if matches else None

    async def authorize(self, token: str, target_type: TargetType, target_id: str) -> BearerKey:
        """Raise UnauthorizedError for unknown tokens and PermissionDeniedError outside scope."""
        key = await self.authenticate(token)
        if key is None:
            raise UnauthorizedError("Invalid bearer token")
        if not key.allows(target_type, target_id):
            logger.info(
                "bearer_key_denied",
                key_id=key.id,
                target_type=target_type.value,
                target_id=target_id,
            )
            raise PermissionDeniedError("Bearer key does not grant access to this target")
        logger.debug(
            "bearer_key_authorized", key_id=key.id, target_type=target_type.value, target_id=target_id
        )
        return key
