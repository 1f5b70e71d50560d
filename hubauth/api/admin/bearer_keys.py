"""Bearer key management endpoints (admin only)."""

from typing import List

from fastapi import APIRouter, status

from hubauth.core.logging import get_logger
from hubauth.dependencies import AdminIdentity, BearerKeyServiceDep
from hubauth.models.api import SuccessResponse
from hubauth.models.requests import BearerKeyCreateRequest, BearerKeyUpdateRequest
from hubauth.models.responses import BearerKeyResponse, DeletedResponse

logger = get_logger(__name__)

router = APIRouter(prefix="/bearer-keys", tags=["bearer-keys"])


@router.get("", response_model=SuccessResponse[List[BearerKeyResponse]])
async def list_bearer_keys(
    admin: AdminIdentity, service: BearerKeyServiceDep
) -> SuccessResponse[List[BearerKeyResponse]]:
    keys = await service.list_keys()
    return SuccessResponse(data=[BearerKeyResponse.from_key(k) for k in keys])


@router.get("/{key_id}", response_model=SuccessResponse[BearerKeyResponse])
async def get_bearer_key(
    key_id: str, admin: AdminIdentity, service: BearerKeyServiceDep
) -> SuccessResponse[BearerKeyResponse]:
    return SuccessResponse(data=BearerKeyResponse.from_key(await service.get_key(key_id)))


@router.post(
    "",
    response_model=SuccessResponse[BearerKeyResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_bearer_key(
    body: BearerKeyCreateRequest, admin: AdminIdentity, service: BearerKeyServiceDep
) -> SuccessResponse[BearerKeyResponse]:
    """Create a bearer key.

    The token must not be shared with another enabled key.
    """
    key = await service.create_key(body)
    return SuccessResponse(data=BearerKeyResponse.from_key(key))


@router.put("/{key_id}", response_model=SuccessResponse[BearerKeyResponse])
async def update_bearer_key(
    key_id: str,
    body: BearerKeyUpdateRequest,
    admin: AdminIdentity,
    service: BearerKeyServiceDep,
) -> SuccessResponse[BearerKeyResponse]:
    key = await service.update_key(key_id, body)
    return SuccessResponse(data=BearerKeyResponse.from_key(key))


@router.delete("/{key_id}", response_model=SuccessResponse[DeletedResponse])
async def delete_bearer_key(
    key_id: str, admin: AdminIdentity, service: BearerKeyServiceDep
) -> SuccessResponse[DeletedResponse]:
    await service.delete_key(key_id)
    return SuccessResponse(data=DeletedResponse())
