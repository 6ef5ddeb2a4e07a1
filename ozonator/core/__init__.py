"""
Core module exports.
"""
from .enums import (
    SyncRunKind,
    SyncRunStatus,
    Visibility,
    DeliverySchema,
)

from .exceptions import (
    BaseServiceError,
    PlatformServiceError,
    OzonServiceError,
    OzonAPIError,
    SyncError,
    PaginationLimitError,
    CredentialsMissingError,
)

from .utils import (
    ValidId,
    InvalidId,
    parse_external_id,
    valid_ids,
    chunked,
)
