"""OAuth client management endpoints (admin only)."""

from typing import List

from fastapi import APIRouter, status

from hubauth.core.logging import get_logger
from hubauth.dependencies import AdminIdentity, OAuthClientServiceDep
from hubauth.models.api import SuccessResponse
from hubauth.models.requests import OAuthClientCreateRequest, OAuthClientUpdateRequest
from hubauth.models.responses import (
    DeletedResponse,
    OAuthClientCreatedResponse,
    OAuthClientResponse,
)
from hubauth.services.oauth_clients import SECRET_WARNING

logger = get_logger(__name__)

router = APIRouter(prefix="/oauth/clients", tags=["oauth-clients"])


@router.get("", response_model=SuccessResponse[List[OAuthClientResponse]])
async def list_clients(
    admin: AdminIdentity, service: OAuthClientServiceDep
) -> SuccessResponse[List[OAuthClientResponse]]:
    """List registered clients. Secrets are never included."""
    clients = await service.list_clients()
    return SuccessResponse(data=[OAuthClientResponse.from_client(c) for c in clients])


@router.get("/{client_id}", response_model=SuccessResponse[OAuthClientResponse])
async def get_client(
    client_id: str, admin: AdminIdentity, service: OAuthClientServiceDep
) -> SuccessResponse[OAuthClientResponse]:
    client = await service.get_client(client_id)
    return SuccessResponse(data=OAuthClientResponse.from_client(client))


@router.post(
    "",
    response_model=SuccessResponse[OAuthClientCreatedResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Register an OAuth client",
    description="Generates clientId and clientSecret when omitted. The secret is only returned here.",
)
async def create_client(
    body: OAuthClientCreateRequest, admin: AdminIdentity, service: OAuthClientServiceDep
) -> SuccessResponse[OAuthClientCreatedResponse]:
    client = await service.create_client(body, admin)
    data = OAuthClientCreatedResponse(
        **OAuthClientResponse.from_client(client).model_dump(),
        client_secret=client.client_secret,
        warning=SECRET_WARNING if client.client_secret else None,
    )
    return SuccessResponse(data=data)


@router.put("/{client_id}", response_model=SuccessResponse[OAuthClientResponse])
async def update_client(
    client_id: str,
    body: OAuthClientUpdateRequest,
    admin: AdminIdentity,
    service: OAuthClientServiceDep,
) -> SuccessResponse[OAuthClientResponse]:
    client = await service.update_client(client_id, body)
    return SuccessResponse(data=OAuthClientResponse.from_client(client))


@router.delete("/{client_id}", response_model=SuccessResponse[DeletedResponse])
async def delete_client(
    client_id: str, admin: AdminIdentity, service: OAuthClientServiceDep
) -> SuccessResponse[DeletedResponse]:
    """Delete a client; its issued tokens are revoked with it."""
    await service.delete_client(client_id)
    return SuccessResponse(data=DeletedResponse())


@router.post(
    "/{client_id}/regenerate-secret",
    response_model=SuccessResponse[OAuthClientCreatedResponse],
)
async def regenerate_secret(
    client_id: str, admin: AdminIdentity, service: OAuthClientServiceDep
) -> SuccessResponse[OAuthClientCreatedResponse]:
    client, secret = await service.regenerate_secret(client_id)
    data = OAuthClientCreatedResponse(
        **OAuthClientResponse.from_client(client).model_dump(),
        client_secret=secret,
        warning=SECRET_WARNING,
    )
    return SuccessResponse(data=data)
