"""Guard context managers for common validation patterns."""

from contextlib import contextmanager
from typing import Iterator, Optional, TypeVar

from hubauth.core.exceptions import (
    NotFoundError,
    PermissionDeniedError,
    UnauthorizedError,
)
from hubauth.models.domain import User

T = TypeVar("T")


@contextmanager
def guard_not_found(value: Optional[T], error_message: str) -> Iterator[T]:
    """Guard that turns a missing lookup result into NotFoundError.

    Example:
        with guard_not_found(await dao.find_by_id(key_id), "Bearer key not found") as key:
            return key
    """
    if value is None:
        raise NotFoundError(error_message)
    yield value


@contextmanager
def guard_admin(identity: Optional[User], skip_auth: bool = False) -> Iterator[Optional[User]]:
    """Guard for administrative operations.

    Args:
        identity: The resolved caller, if any
        skip_auth: Deployment-wide switch that disables the check

    Raises:
        UnauthorizedError: If no identity was resolved
        PermissionDeniedError: If the identity is not an admin
    """
    if not skip_auth:
        if identity is None:
            raise UnauthorizedError("Authentication required")
        if not identity.is_admin:
            raise PermissionDeniedError("Admin privileges required")
    yield identity

