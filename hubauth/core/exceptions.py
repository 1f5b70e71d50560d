"""Custom exception classes."""


class HubAuthError(Exception):
    """Base exception for the credential subsystem."""

    def __init__(self, message: str, code: str = "error", details: dict = None):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)


class PermissionDeniedError(HubAuthError):
    """The caller's identity lacks rights for the operation."""

    def __init__(self, message: str = "Permission denied"):
        super().__init__(message, "permission_denied")


class NotFoundError(HubAuthError):
    """Key absent after the permission check passed."""

    def __init__(self, message: str):
        super().__init__(message, "not_found")


class AlreadyExistsError(HubAuthError):
    """Create collided with an existing unique key."""

    def __init__(self, message: str):
        super().__init__(message, "already_exists")


class StorageFailureError(HubAuthError):
    """Durable read or write failed."""

    def __init__(self, message: str = "Failed to save data"):
        super().__init__(message, "storage_failure")


class UnauthorizedError(HubAuthError):
    """Exception for unauthorized access errors."""

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message, "unauthorized")


class ValidationError(HubAuthError):
    """Exception for validation errors."""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message, "validation_error", details)


class OAuthError(HubAuthError):
    """Error surfaced through the OAuth2 wire protocol (RFC 6749 section 5.2)."""

    error = "invalid_request"
    status_code = 400
    default_description = "The request is missing a parameter or is otherwise malformed"

    def __init__(self, description: str | None = None):
        self.description = description or self.default_description
        super().__init__(self.description, self.error, {"status_code": self.status_code})


class InvalidRequestError(OAuthError):
    error = "invalid_request"


class InvalidClientError(OAuthError):
    error = "invalid_client"
    status_code = 401
    default_description = "Client authentication failed"


class InvalidGrantError(OAuthError):
    error = "invalid_grant"
    default_description = "The provided authorization grant is invalid, expired or revoked"


class InvalidScopeError(OAuthError):
    error = "invalid_scope"
    default_description = "The requested scope is invalid"


class UnauthorizedClientError(OAuthError):
    error = "unauthorized_client"
    default_description = "The client is not authorized to use this grant type"


class UnsupportedGrantTypeError(OAuthError):
    error = "unsupported_grant_type"
    default_description = "The grant type is not supported"


class InvalidTokenError(OAuthError):
    error = "invalid_token"
    status_code = 401
    default_description = "Invalid or expired access token"


class InvalidRedirectUriError(OAuthError):
    """RFC 7591 section 3.2.2."""

    error = "invalid_redirect_uri"
    default_description = "One or more redirect URIs are invalid"


class InvalidClientMetadataError(OAuthError):
    """RFC 7591 section 3.2.2."""

    error = "invalid_client_metadata"
    default_description = "The client metadata is invalid"


class RegistrationDisabledError(OAuthError):
    error = "invalid_request"
    status_code = 403
    default_description = "Dynamic client registration is not enabled"


class ServerUnavailableError(OAuthError):
    error = "temporarily_unavailable"
    status_code = 503
    default_description = "OAuth server not available"
