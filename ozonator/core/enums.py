"""
Shared enums and constants used across the application.
"""

from enum import Enum


class SyncRunKind(str, Enum):
    CREDENTIAL_CHECK = "credential-check"
    CATALOG_SYNC = "catalog-sync"


class SyncRunStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"


class Visibility(str, Enum):
    """Tri-state visibility of an offer on the storefront"""
    VISIBLE = "visible"
    HIDDEN = "hidden"
    UNKNOWN = "unknown"

    @classmethod
    def from_flag(cls, flag) -> "Visibility":
        if flag is True:
            return cls.VISIBLE
        if flag is False:
            return cls.HIDDEN
        return cls.UNKNOWN


class DeliverySchema(str, Enum):
    FBO = "FBO"
    FBS = "FBS"
