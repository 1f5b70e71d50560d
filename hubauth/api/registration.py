"""Dynamic client registration endpoints (RFC 7591, RFC 7592)."""

import json

from fastapi import APIRouter, Request, Response, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError

from hubauth.api.oauth import NO_STORE_HEADERS, issuer_url
from hubauth.core.exceptions import InvalidClientMetadataError
from hubauth.core.logging import get_logger
from hubauth.core.security import OptionalBearerToken
from hubauth.dependencies import ClientRegistrationServiceDep, SettingsDep
from hubauth.models.requests import ClientRegistrationRequest
from hubauth.models.responses import ClientRegistrationResponse

logger = get_logger(__name__)

router = APIRouter(prefix="/oauth/register", tags=["oauth-registration"])


async def read_metadata(request: Request) -> ClientRegistrationRequest:
    """Parse the JSON client metadata body."""
    try:
        body = await request.json()
        return ClientRegistrationRequest.model_validate(body)
    except json.JSONDecodeError:
        raise InvalidClientMetadataError("Request body must be a JSON object")
    except PydanticValidationError as e:
        logger.warning("client_metadata_invalid", errors=e.errors(include_input=False))
        raise InvalidClientMetadataError()


def registration_response(
    result: ClientRegistrationResponse, status_code: int = status.HTTP_200_OK
) -> JSONResponse:
    return JSONResponse(
        content=result.model_dump(exclude_none=True),
        status_code=status_code,
        headers=NO_STORE_HEADERS,
    )


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Register a client",
    description="Creates a client from RFC 7591 metadata and returns its credentials.",
)
async def register_client(
    request: Request, service: ClientRegistrationServiceDep, settings: SettingsDep
) -> JSONResponse:
    metadata = await read_metadata(request)
    result = await service.register(metadata, issuer_url(request, settings.base_url))
    return registration_response(result, status.HTTP_201_CREATED)


@router.get("/{client_id}", summary="Read a client registration")
async def get_client_configuration(
    client_id: str, service: ClientRegistrationServiceDep, token: OptionalBearerToken
) -> JSONResponse:
    return registration_response(await service.get_configuration(client_id, token))


@router.put("/{client_id}", summary="Update a client registration")
async def update_client_configuration(
    client_id: str,
    request: Request,
    service: ClientRegistrationServiceDep,
    token: OptionalBearerToken,
) -> JSONResponse:
    metadata = await read_metadata(request)
    return registration_response(await service.update_configuration(client_id, token, metadata))


@router.delete(
    "/{client_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a client registration",
)
async def delete_client_registration(
    client_id: str, service: ClientRegistrationServiceDep, token: OptionalBearerToken
) -> Response:
    await service.delete_registration(client_id, token)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
