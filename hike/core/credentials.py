# hike/core/credentials.py
"""
Credential capability handed to the orchestration layer.

The service never reaches for a global key selector; whoever builds a client
passes one of these in.
"""
from __future__ import annotations

import os
from typing import Optional, Sequence

from typing_extensions import Protocol

from hike.core.errors import ConfigurationError


class CredentialProvider(Protocol):
    def has_credential(self) -> bool: ...

    def request_credential(self) -> str: ...


class StaticCredentialProvider:
    def __init__(self, value: Optional[str], label: str = "API key"):
        self._value = value
        self.label = label

    def has_credential(self) -> bool:
        return bool(self._value)

    def request_credential(self) -> str:
        if not self._value:
            raise ConfigurationError(f"{self.label} is not configured.")
        return self._value


class EnvCredentialProvider:
    """Looks the credential up in the environment on every request."""

    def __init__(self, names: Sequence[str]):
        self.names = tuple(names)

    def _lookup(self) -> Optional[str]:
        for name in self.names:
            v = os.getenv(name)
            if v:
                return v
        return None

    def has_credential(self) -> bool:
        return self._lookup() is not None

    def request_credential(self) -> str:
        v = self._lookup()
        if not v:
            raise ConfigurationError(
                f"{' or '.join(self.names)} is not set. Configure an API key and try again."
            )
        return v


class SelectableCredentialProvider:
    """
    A credential the user can pick at runtime (the "select key" control),
    falling back to another provider until they do.
    """

    def __init__(self, fallback: Optional[CredentialProvider] = None):
        self._selected: Optional[str] = None
        self._fallback = fallback

    def select(self, value: str) -> None:
        value = (value or "").strip()
        if not value:
            raise ConfigurationError("API key must not be empty.")
        self._selected = value

    def clear(self) -> None:
        self._selected = None

    def has_credential(self) -> bool:
        if self._selected:
            return True
        return bool(self._fallback and self._fallback.has_credential())

    def request_credential(self) -> str:
        if self._selected:
            return self._selected
        if self._fallback is not None:
            return self._fallback.request_credential()
        raise ConfigurationError("No API key selected. Select a key and try again.")
