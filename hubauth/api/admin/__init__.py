"""Administrative and connector-facing API endpoints."""

from fastapi import APIRouter

from hubauth.api.admin import access, bearer_keys, oauth_clients

# Create main router for /api endpoints
router = APIRouter()

# Include sub-routers
router.include_router(oauth_clients.router)
router.include_router(bearer_keys.router)
router.include_router(access.router)

__all__ = ["router"]
