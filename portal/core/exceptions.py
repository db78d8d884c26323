# ============================================================================
# Custom Exceptions
# ============================================================================
from typing import Optional

class PortalException(Exception):
    """Base exception for the content portal"""
    def __init__(
        self,
        detail: str,
        status_code: int = 400,
        error_code: Optional[str] = None
    ):
        self.detail = detail
        self.status_code = status_code
        self.error_code = error_code or "PORTAL_ERROR"
        super().__init__(self.detail)

class NotFound(PortalException):
    def __init__(self, entity: str, identifier: Optional[str] = None):
        detail = f"{entity} not found" if identifier is None else f"{entity} not found: {identifier}"
        super().__init__(
            detail=detail,
            status_code=404,
            error_code="NOT_FOUND"
        )

class Conflict(PortalException):
    def __init__(self, message: str):
        super().__init__(
            detail=message,
            status_code=409,
            error_code="CONFLICT"
        )

class InvalidRequest(PortalException):
    def __init__(self, message: str, error_code: str = "INVALID_REQUEST"):
        super().__init__(
            detail=message,
            status_code=400,
            error_code=error_code
        )

class AuthenticationFailed(PortalException):
    def __init__(self, message: str = "Authentication required"):
        super().__init__(
            detail=message,
            status_code=401,
            error_code="AUTHENTICATION_FAILED"
        )

class PermissionDenied(PortalException):
    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(
            detail=message,
            status_code=403,
            error_code="PERMISSION_DENIED"
        )

class ConfigurationError(PortalException):
    def __init__(self, message: str):
        super().__init__(
            detail=message,
            status_code=500,
            error_code="CONFIGURATION_ERROR"
        )
