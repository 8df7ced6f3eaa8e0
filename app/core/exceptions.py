from fastapi import HTTPException, status
from functools import wraps
from typing import Callable, Optional


class ServiceError(HTTPException):
    """Base for errors rendered as {"error": ..., "code": ...}"""
    code = "internal_error"

    def __init__(self, detail: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR):
        super().__init__(status_code=status_code, detail=detail)


class ValidationError(ServiceError):
    """Missing or malformed request fields"""
    code = "validation_error"

    def __init__(self, detail: str = "Validation failed"):
        super().__init__(detail, status_code=status.HTTP_400_BAD_REQUEST)


class MethodNotAllowedError(ServiceError):
    code = "method_not_allowed"

    def __init__(self, detail: str = "Method not allowed"):
        super().__init__(detail, status_code=status.HTTP_405_METHOD_NOT_ALLOWED)


class ProviderError(ServiceError):
    """Upstream payment provider failure"""
    code = "provider_error"

    def __init__(self, detail: str):
        super().__init__(detail)


class ProviderAuthError(ProviderError):
    """Credentials are absent or rejected"""
    code = "provider_auth_error"


class ProviderRequestError(ProviderError):
    """The provider answered with a non-2xx status"""
    code = "provider_request_error"

    def __init__(self, detail: str, upstream_status: Optional[int] = None):
        super().__init__(detail)
        self.upstream_status = upstream_status


class ProviderTimeoutError(ProviderRequestError):
    code = "provider_timeout"


class ProviderResponseError(ProviderError):
    """A successful response is missing a field we depend on"""
    code = "provider_response_error"


class SubscriptionNotActiveError(ServiceError):
    """The provider reports a status outside its active class"""
    code = "subscription_not_active"

    def __init__(self, raw_status: str):
        super().__init__(f"Subscription is not active. Status: {raw_status}")
        self.raw_status = raw_status


class StorageError(ServiceError):
    code = "storage_error"

    def __init__(self, detail: str = "Database operation failed"):
        super().__init__(detail)


def handle_storage_errors(func: Callable) -> Callable:
    """Decorator to wrap unexpected storage failures in StorageError"""
    @wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except HTTPException:
            raise
        except Exception as e:
            raise StorageError(f"Database operation failed: {str(e)}")
    return wrapper
