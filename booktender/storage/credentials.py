"""
Credential Store

Narrow get(name) access to API credentials. How secrets are encrypted at
rest is the host application's concern.
"""

import os
from abc import ABC, abstractmethod
from typing import Optional


class CredentialStore(ABC):
    """Read access to named API credentials."""

    @abstractmethod
    def get(self, name: str) -> Optional[str]:
        """Return the secret for name, or None if absent."""

    def has(self, name: str) -> bool:
        return bool(self.get(name))


class EnvCredentialStore(CredentialStore):
    """Credentials taken from environment variables."""

    ENV_VARS = {
        "anthropic": "ANTHROPIC_API_KEY",
        "google_books": "GOOGLE_BOOKS_API_KEY",
    }

    def env_var(self, name: str) -> str:
        return self.ENV_VARS.get(name, f"{name.upper()}_API_KEY")

    def get(self, name: str) -> Optional[str]:
        return os.getenv(self.env_var(name)) or None


class InMemoryCredentialStore(CredentialStore):
    """Credentials held in a dict; used for embedding and tests."""

    def __init__(self, secrets: Optional[dict[str, str]] = None):
        self._secrets = dict(secrets or {})

    def get(self, name: str) -> Optional[str]:
        return self._secrets.get(name) or None

    def set(self, name: str, value: str):
        self._secrets[name] = value

    def delete(self, name: str):
        self._secrets.pop(name, None)
