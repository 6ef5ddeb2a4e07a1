from typing import Any, Dict, Optional


class BaseServiceError(Exception):
    """Base exception for all service-related errors."""
    pass


class PlatformServiceError(BaseServiceError):
    """Base exception for platform service errors."""
    pass


class OzonServiceError(PlatformServiceError):
    """Base exception for Ozon-specific errors."""
    pass


class OzonAPIError(OzonServiceError):
    """
    Raised when an Ozon API call fails.

    Carries everything needed to decide on a version fallback and to record
    the failure in the sync run log.
    """

    def __init__(
        self,
        message: str,
        http_status: Optional[int] = None,
        endpoint: Optional[str] = None,
        request_body: Any = None,
        payload: Any = None,
    ):
        super().__init__(message)
        self.message = message
        self.http_status = http_status
        self.endpoint = endpoint
        self.request_body = request_body
        self.payload = payload

    @property
    def is_not_found(self) -> bool:
        return self.http_status == 404

    @property
    def details(self) -> Dict[str, Any]:
        return {
            "http_status": self.http_status,
            "endpoint": self.endpoint,
            "request_body": self.request_body,
            "payload": self.payload,
        }


class SyncError(PlatformServiceError):
    """Raised when platform synchronization fails."""
    pass


class PaginationLimitError(SyncError):
    """Raised when cursor pagination hits its iteration ceiling."""

    def __init__(self, max_pages: int):
        super().__init__(f"Pagination aborted after {max_pages} pages without reaching the end of the list")
        self.max_pages = max_pages


class CredentialsMissingError(BaseServiceError):
    """Raised when no usable Client-Id / Api-Key pair is configured."""
    pass
