"""Bearer key access check consumed by connector routes."""

from fastapi import APIRouter

from hubauth.core.logging import get_logger
from hubauth.core.security import BearerToken
from hubauth.dependencies import BearerKeyAuthorizerDep
from hubauth.models.api import SuccessResponse
from hubauth.models.domain import TargetType
from hubauth.models.responses import AccessCheckResponse

logger = get_logger(__name__)

router = APIRouter(prefix="/access", tags=["access"])


@router.get(
    "/{target_type}/{target_id}",
    response_model=SuccessResponse[AccessCheckResponse],
    summary="Check a bearer key against a group or server",
    description=(
        "Returns 200 when the presented bearer key may reach the target, "
        "401 for unknown or disabled keys and 403 when the key is out of scope."
    ),
)
async def check_access(
    target_type: TargetType,
    target_id: str,
    token: BearerToken,
    authorizer: BearerKeyAuthorizerDep,
) -> SuccessResponse[AccessCheckResponse]:
    key = await authorizer.authorize(token, target_type, target_id)
    return SuccessResponse(data=AccessCheckResponse(key_id=key.id, key_name=key.name))
