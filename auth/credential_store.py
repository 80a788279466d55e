from __future__ import annotations

import asyncio
import threading
from abc import ABC, abstractmethod

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

from auth.errors import StoreError, StoreNotFoundError
from gtasks.constants import KEYRING_ACCOUNT, KEYRING_SERVICE


class CredentialStore(ABC):
    """Holds the single refresh token for this installation."""

    @abstractmethod
    async def save(self, secret: str) -> None:
        raise NotImplementedError

    @abstractmethod
    async def load(self) -> str:
        """Return the stored secret or raise ``StoreNotFoundError``."""
        raise NotImplementedError

    @abstractmethod
    async def delete(self) -> None:
        """Remove the stored secret or raise ``StoreNotFoundError``."""
        raise NotImplementedError


class MemoryCredentialStore(CredentialStore):
    def __init__(self, secret: str | None = None) -> None:
        self._secret = secret

    async def save(self, secret: str) -> None:
        self._secret = secret

    async def load(self) -> str:
        if self._secret is None:
            raise StoreNotFoundError("No refresh token stored.")
        return self._secret

    async def delete(self) -> None:
        if self._secret is None:
            raise StoreNotFoundError("No refresh token stored.")
        self._secret = None


class KeyringCredentialStore(CredentialStore):
    """OS keychain / credential manager / secret service via ``keyring``."""

    def __init__(
        self,
        service: str = KEYRING_SERVICE,
        account: str = KEYRING_ACCOUNT,
    ) -> None:
        self.service = service
        self.account = account
        # Backends are not guaranteed to serialise a set against a get.
        self._lock = threading.Lock()

    async def save(self, secret: str) -> None:
        await asyncio.to_thread(self._save, secret)

    async def load(self) -> str:
        return await asyncio.to_thread(self._load)

    async def delete(self) -> None:
        await asyncio.to_thread(self._delete)

    def _save(self, secret: str) -> None:
        with self._lock:
            try:
                keyring.set_password(self.service, self.account, secret)
            except KeyringError as error:
                raise StoreError(f"keyring set: {error}") from error

    def _load(self) -> str:
        with self._lock:
            try:
                secret = keyring.get_password(self.service, self.account)
            except KeyringError as error:
                raise StoreError(f"keyring get: {error}") from error
        if secret is None:
            raise StoreNotFoundError(
                f"No refresh token stored for {self.service}/{self.account}."
            )
        return secret

    def _delete(self) -> None:
        with self._lock:
            try:
                keyring.delete_password(self.service, self.account)
            except PasswordDeleteError as error:
                raise StoreNotFoundError(
                    f"No refresh token stored for {self.service}/{self.account}."
                ) from error
            except KeyringError as error:
                raise StoreError(f"keyring del: {error}") from error
