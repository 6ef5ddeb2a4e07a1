"""
Credential schema and the interface of the credential collaborator.

Storage and encryption of the key pair live outside the engine; the engine
only needs to read the pair and to write back a resolved display name.
"""
from abc import ABC, abstractmethod
from typing import Optional

from pydantic import BaseModel, field_validator

from ozonator.core.exceptions import CredentialsMissingError


class Credential(BaseModel):
    identity: str  # Ozon Client-Id, also the store identity
    api_key: str
    cached_display_name: Optional[str] = None

    @field_validator('identity', 'api_key', mode='before')
    @classmethod
    def strip_value(cls, v):
        return str(v).strip() if v is not None else v

    def __repr__(self):
        # Never leak the key into logs or tracebacks
        return f"Credential(identity={self.identity!r}, api_key='***', cached_display_name={self.cached_display_name!r})"

    __str__ = __repr__


class CredentialProvider(ABC):
    """Interface of the credential collaborator"""

    @abstractmethod
    def load(self) -> Credential:
        """Return the active credential or raise CredentialsMissingError"""
        pass

    @abstractmethod
    def update_display_name(self, name: str) -> None:
        """Persist the resolved store name next to the credential"""
        pass

    def current_identity(self) -> Optional[str]:
        try:
            return self.load().identity
        except CredentialsMissingError:
            return None


class StaticCredentialProvider(CredentialProvider):
    """Credential held in memory, e.g. built from settings or supplied by the shell"""

    def __init__(self, identity: str = "", api_key: str = "", display_name: Optional[str] = None):
        self._identity = (identity or "").strip()
        self._api_key = (api_key or "").strip()
        self._display_name = display_name

    @classmethod
    def from_settings(cls, settings) -> "StaticCredentialProvider":
        return cls(settings.OZON_CLIENT_ID, settings.OZON_API_KEY, settings.OZON_STORE_NAME)

    def load(self) -> Credential:
        if not self._identity or not self._api_key:
            raise CredentialsMissingError("Ozon Client-Id and Api-Key are not configured")
        return Credential(
            identity=self._identity,
            api_key=self._api_key,
            cached_display_name=self._display_name,
        )

    def update_display_name(self, name: str) -> None:
        self._display_name = name
