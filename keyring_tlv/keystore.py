"""Keystore collection: an ordered list of algorithm records in one buffer.

The buffer carries no count prefix. Entries are concatenated in list order
and the decoder walks them by their own length fields until the buffer is
exhausted, so an empty buffer is an empty keystore.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field

from .algorithm import DEFAULT_REGISTRY, AlgorithmRegistry, KeyAlgorithm
from .limits import DEFAULT_LIMITS, CodecLimits
from .tlv import BytesLike, KeystoreEntry, LengthMismatchError, TLVError, pack_entry_into, unpack_entry

logger = logging.getLogger(__name__)


class KeystoreError(TLVError):
    """Raised on keystore collection operations."""


class KeystoreEntryNotFoundError(KeystoreError):
    """No record equal to the requested one exists in the keystore."""


@dataclass(slots=True)
class Keystore:
    """Ordered collection of key records; order mirrors insertion order."""

    entries: list[KeyAlgorithm] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.entries = list(self.entries)
        for variant in self.entries:
            _require_variant(variant)

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[KeyAlgorithm]:
        return iter(self.entries)

    def add(self, variant: KeyAlgorithm) -> None:
        self.entries.append(_require_variant(variant))

    def remove(self, variant: KeyAlgorithm) -> int:
        """Drop every record equal to ``variant``; returns how many were dropped."""
        kept = [existing for existing in self.entries if existing != variant]
        removed = len(self.entries) - len(kept)
        if removed == 0:
            raise KeystoreEntryNotFoundError(f"no {getattr(variant, 'NAME', 'matching')} entry with that key")
        self.entries = kept
        return removed

    def pack(
        self,
        *,
        registry: AlgorithmRegistry = DEFAULT_REGISTRY,
        limits: CodecLimits = DEFAULT_LIMITS,
    ) -> bytes:
        return pack_keystore(self, registry=registry, limits=limits)

    @classmethod
    def unpack(
        cls,
        data: BytesLike,
        *,
        registry: AlgorithmRegistry = DEFAULT_REGISTRY,
        limits: CodecLimits = DEFAULT_LIMITS,
    ) -> Keystore:
        return unpack_keystore(data, registry=registry, limits=limits)


def pack_keystore(
    keystore: Keystore | Iterable[KeyAlgorithm],
    *,
    registry: AlgorithmRegistry = DEFAULT_REGISTRY,
    limits: CodecLimits = DEFAULT_LIMITS,
) -> bytes:
    variants = keystore.entries if isinstance(keystore, Keystore) else list(keystore)
    if len(variants) > limits.max_entries:
        raise LengthMismatchError(f"keystore of {len(variants)} entries exceeds limit {limits.max_entries}")

    entries = [registry.to_entry(variant) for variant in variants]
    total = sum(entry.packed_len() for entry in entries)
    if total > limits.max_keystore_bytes:
        raise LengthMismatchError(f"keystore of {total} bytes exceeds limit {limits.max_keystore_bytes}")

    buffer = bytearray(total)
    offset = 0
    for entry in entries:
        offset = pack_entry_into(buffer, offset, entry, limits=limits)
    if offset != total:
        raise LengthMismatchError(f"packed {offset} bytes, expected {total}")

    logger.debug("packed keystore: entries=%d bytes=%d", len(entries), total)
    return bytes(buffer)


def iter_keystore_entries(
    data: BytesLike,
    *,
    limits: CodecLimits = DEFAULT_LIMITS,
) -> Iterator[tuple[int, KeystoreEntry, int]]:
    """Yield ``(start, entry, end)`` for each raw entry in buffer order."""
    if not isinstance(data, (bytes, bytearray, memoryview)):
        raise TypeError("keystore data must be bytes")
    size = len(data)
    if size > limits.max_keystore_bytes:
        raise LengthMismatchError(f"keystore of {size} bytes exceeds limit {limits.max_keystore_bytes}")

    offset = 0
    count = 0
    while offset < size:
        if count >= limits.max_entries:
            raise LengthMismatchError(f"keystore holds more than {limits.max_entries} entries")
        entry, end = unpack_entry(data, offset, limits=limits)
        yield offset, entry, end
        offset = end
        count += 1


def unpack_keystore(
    data: BytesLike,
    *,
    registry: AlgorithmRegistry = DEFAULT_REGISTRY,
    limits: CodecLimits = DEFAULT_LIMITS,
) -> Keystore:
    variants = [registry.from_entry(entry) for _, entry, _ in iter_keystore_entries(data, limits=limits)]
    logger.debug("unpacked keystore: entries=%d bytes=%d", len(variants), len(data))
    return Keystore(variants)


def _require_variant(variant: object) -> KeyAlgorithm:
    if not isinstance(variant, KeyAlgorithm):
        raise TypeError("keystore records must be KeyAlgorithm instances")
    return variant
