"""Keyring service: keystore lifecycle over a storage backend."""

from __future__ import annotations

import logging
import threading

from .algorithm import DEFAULT_REGISTRY, AlgorithmRegistry, KeyAlgorithm
from .keystore import Keystore, pack_keystore, unpack_keystore
from .limits import DEFAULT_LIMITS, CodecLimits
from .storage import KeystoreStorage, StorageError

logger = logging.getLogger(__name__)


class KeystoreNotFoundError(ValueError):
    """Raised when an authority has no stored keystore."""


class Keyring:
    """Read, mutate and re-store keystores.

    Every mutation decodes the stored buffer, edits the list, re-encodes it
    and replaces the stored buffer wholesale. Mutations through one keyring
    are serialized; separate processes sharing a backend are not coordinated.
    """

    def __init__(
        self,
        storage: KeystoreStorage,
        *,
        registry: AlgorithmRegistry = DEFAULT_REGISTRY,
        limits: CodecLimits = DEFAULT_LIMITS,
    ) -> None:
        self.storage = storage
        self.registry = registry
        self.limits = limits
        self._lock = threading.Lock()

    def create_keystore(self, authority: str) -> Keystore:
        with self._lock:
            if self.storage.read(authority) is not None:
                raise StorageError("keystore already exists for authority")
            self.storage.write(authority, b"")
        logger.debug("created empty keystore")
        return Keystore()

    def delete_keystore(self, authority: str) -> None:
        with self._lock:
            deleted = self.storage.delete(authority)
        if not deleted:
            raise KeystoreNotFoundError("keystore not found")

    def has_keystore(self, authority: str) -> bool:
        return self.storage.read(authority) is not None

    def get_keystore_bytes(self, authority: str) -> bytes:
        data = self.storage.read(authority)
        if data is None:
            raise KeystoreNotFoundError("keystore not found")
        return data

    def get_keystore(self, authority: str) -> Keystore:
        return unpack_keystore(self.get_keystore_bytes(authority), registry=self.registry, limits=self.limits)

    def add_entry(self, authority: str, variant: KeyAlgorithm) -> Keystore:
        with self._lock:
            keystore = self.get_keystore(authority)
            keystore.add(variant)
            self._store(authority, keystore)
        return keystore

    def remove_entry(self, authority: str, variant: KeyAlgorithm) -> Keystore:
        with self._lock:
            keystore = self.get_keystore(authority)
            keystore.remove(variant)
            self._store(authority, keystore)
        return keystore

    def _store(self, authority: str, keystore: Keystore) -> None:
        data = pack_keystore(keystore, registry=self.registry, limits=self.limits)
        self.storage.write(authority, data)
        logger.debug("stored keystore: entries=%d bytes=%d", len(keystore), len(data))
