"""Nested TLV codec for keystore entries.

Layout, all integers u32 little-endian::

    entry        := ENTRY(8) len(4) key_section config_section
    key_section  := algorithm(8) key_len(4) key
    config       := 0x00 | HAS_CONFIGURATIONS(8) len(4) config_entry+
    config_entry := field(8) value_len(4) value

``len`` in the entry header covers the key and configuration sections and
excludes the 12-byte header itself. Every ``unpack_*`` function takes an
absolute ``offset`` (and optional ``end`` bound) into the caller's buffer and
returns absolute offsets, so nested decoders never copy intermediate slices.
"""

from __future__ import annotations

import struct
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Union

from .constants import (
    DISCRIMINATOR_LEN,
    ENTRY_HASH_INPUT,
    HAS_CONFIGURATIONS_HASH_INPUT,
    NO_CONFIGURATIONS_MARKER,
    U32_MAX,
)
from .limits import DEFAULT_LIMITS, CodecLimits
from .utils import discriminator_for

_U32 = struct.Struct("<I")

U32_LEN = _U32.size
HEADER_LEN = DISCRIMINATOR_LEN + U32_LEN

ENTRY_DISCRIMINATOR = discriminator_for(ENTRY_HASH_INPUT)
HAS_CONFIGURATIONS_DISCRIMINATOR = discriminator_for(HAS_CONFIGURATIONS_HASH_INPUT)


class TLVError(ValueError):
    """Raised on keystore encoding/decoding failures."""


class TruncatedError(TLVError):
    """Buffer ends before a field it declares."""


class InvalidDiscriminatorError(TLVError):
    """A discriminator does not match the expected value."""


class LengthMismatchError(TLVError):
    """A declared length disagrees with the bytes present or permitted."""


BytesLike = Union[bytes, bytearray, memoryview]


def pack_u32(value: int) -> bytes:
    _check_u32(value)
    return _U32.pack(value)


def unpack_u32(data: BytesLike, offset: int = 0) -> int:
    if offset < 0 or len(data) - offset < U32_LEN:
        raise TruncatedError("buffer too short for u32 field")
    return _U32.unpack_from(data, offset)[0]


def as_discriminator(value: BytesLike) -> bytes:
    if not isinstance(value, (bytes, bytearray, memoryview)):
        raise TypeError("discriminator must be bytes")
    value = bytes(value)
    if len(value) != DISCRIMINATOR_LEN:
        raise InvalidDiscriminatorError(
            f"discriminator must be {DISCRIMINATOR_LEN} bytes, got {len(value)}"
        )
    return value


@dataclass(frozen=True, slots=True)
class ConfigEntry:
    """One named configuration field."""

    key: bytes
    value: bytes

    def __post_init__(self) -> None:
        object.__setattr__(self, "key", as_discriminator(self.key))
        object.__setattr__(self, "value", _as_bytes(self.value, "configuration value"))

    @property
    def value_length(self) -> int:
        return len(self.value)

    def packed_len(self) -> int:
        return HEADER_LEN + len(self.value)


@dataclass(frozen=True, slots=True)
class NoConfigurations:
    """Absent configuration section; packs to the single byte ``0x00``."""

    def packed_len(self) -> int:
        return 1


NO_CONFIGURATIONS = NoConfigurations()


@dataclass(frozen=True, slots=True)
class Configurations:
    """Present configuration section holding at least one entry."""

    entries: tuple[ConfigEntry, ...]

    def __post_init__(self) -> None:
        entries = tuple(self.entries)
        if not entries:
            raise LengthMismatchError("present configuration section needs at least one entry")
        for item in entries:
            if not isinstance(item, ConfigEntry):
                raise TypeError("configuration entries must be ConfigEntry instances")
        object.__setattr__(self, "entries", entries)

    def payload_len(self) -> int:
        return sum(item.packed_len() for item in self.entries)

    def packed_len(self) -> int:
        return HEADER_LEN + self.payload_len()

    def get(self, key: bytes) -> ConfigEntry | None:
        for item in self.entries:
            if item.key == key:
                return item
        return None


ConfigSection = Union[NoConfigurations, Configurations]


def make_config_section(entries: Iterable[ConfigEntry] | None) -> ConfigSection:
    """Build a section, collapsing an empty entry list to the absent form."""
    items = tuple(entries or ())
    if not items:
        return NO_CONFIGURATIONS
    return Configurations(items)


@dataclass(frozen=True, slots=True)
class KeySection:
    """Algorithm discriminator plus raw key bytes."""

    discriminator: bytes
    key: bytes

    def __post_init__(self) -> None:
        object.__setattr__(self, "discriminator", as_discriminator(self.discriminator))
        object.__setattr__(self, "key", _as_bytes(self.key, "key"))

    @property
    def key_length(self) -> int:
        return len(self.key)

    def packed_len(self) -> int:
        return HEADER_LEN + len(self.key)


@dataclass(frozen=True, slots=True)
class KeystoreEntry:
    """One keystore record: a key section and a configuration section."""

    key: KeySection
    config: ConfigSection = NO_CONFIGURATIONS

    def __post_init__(self) -> None:
        if not isinstance(self.key, KeySection):
            raise TypeError("keystore entry key must be a KeySection")
        if self.config is None:
            object.__setattr__(self, "config", NO_CONFIGURATIONS)
        elif not isinstance(self.config, (NoConfigurations, Configurations)):
            raise TypeError("keystore entry config must be NoConfigurations or Configurations")

    def body_len(self) -> int:
        return self.key.packed_len() + self.config.packed_len()

    def packed_len(self) -> int:
        return HEADER_LEN + self.body_len()


# Encoding. Each *_into function writes at ``offset`` into a pre-sized
# bytearray and returns the offset just past what it wrote.


def pack_config_entry_into(buffer: bytearray, offset: int, entry: ConfigEntry) -> int:
    offset = _put(buffer, offset, entry.key)
    offset = _put_u32(buffer, offset, len(entry.value))
    return _put(buffer, offset, entry.value)


def pack_config_section_into(
    buffer: bytearray,
    offset: int,
    section: ConfigSection | None,
    *,
    limits: CodecLimits = DEFAULT_LIMITS,
) -> int:
    if section is None or isinstance(section, NoConfigurations):
        buffer[offset] = NO_CONFIGURATIONS_MARKER
        return offset + 1

    payload_len = section.payload_len()
    if payload_len > limits.max_config_section_bytes:
        raise LengthMismatchError(
            f"configuration section of {payload_len} bytes exceeds limit "
            f"{limits.max_config_section_bytes}"
        )
    offset = _put(buffer, offset, HAS_CONFIGURATIONS_DISCRIMINATOR)
    offset = _put_u32(buffer, offset, payload_len)
    for item in section.entries:
        offset = pack_config_entry_into(buffer, offset, item)
    return offset


def pack_key_section_into(
    buffer: bytearray,
    offset: int,
    section: KeySection,
    *,
    limits: CodecLimits = DEFAULT_LIMITS,
) -> int:
    if len(section.key) > limits.max_key_bytes:
        raise LengthMismatchError(
            f"key of {len(section.key)} bytes exceeds limit {limits.max_key_bytes}"
        )
    offset = _put(buffer, offset, section.discriminator)
    offset = _put_u32(buffer, offset, len(section.key))
    return _put(buffer, offset, section.key)


def pack_entry_into(
    buffer: bytearray,
    offset: int,
    entry: KeystoreEntry,
    *,
    limits: CodecLimits = DEFAULT_LIMITS,
) -> int:
    offset = _put(buffer, offset, ENTRY_DISCRIMINATOR)
    offset = _put_u32(buffer, offset, entry.body_len())
    offset = pack_key_section_into(buffer, offset, entry.key, limits=limits)
    return pack_config_section_into(buffer, offset, entry.config, limits=limits)


def pack_config_entry(entry: ConfigEntry) -> bytes:
    buffer = bytearray(entry.packed_len())
    pack_config_entry_into(buffer, 0, entry)
    return bytes(buffer)


def pack_config_section(
    section: ConfigSection | None,
    *,
    limits: CodecLimits = DEFAULT_LIMITS,
) -> bytes:
    if section is None:
        section = NO_CONFIGURATIONS
    buffer = bytearray(section.packed_len())
    pack_config_section_into(buffer, 0, section, limits=limits)
    return bytes(buffer)


def pack_key_section(section: KeySection, *, limits: CodecLimits = DEFAULT_LIMITS) -> bytes:
    buffer = bytearray(section.packed_len())
    pack_key_section_into(buffer, 0, section, limits=limits)
    return bytes(buffer)


def pack_entry(entry: KeystoreEntry, *, limits: CodecLimits = DEFAULT_LIMITS) -> bytes:
    buffer = bytearray(entry.packed_len())
    pack_entry_into(buffer, 0, entry, limits=limits)
    return bytes(buffer)


# Decoding.


def unpack_config_entry(
    data: BytesLike,
    offset: int = 0,
    end: int | None = None,
) -> tuple[ConfigEntry, int]:
    """Decode one configuration entry; returns it and the offset past its value."""
    end = _resolve_end(data, offset, end)
    if end - offset < HEADER_LEN:
        raise TruncatedError("buffer too short for configuration entry header")
    key = bytes(data[offset : offset + DISCRIMINATOR_LEN])
    value_length = unpack_u32(data, offset + DISCRIMINATOR_LEN)
    value_start = offset + HEADER_LEN
    value_end = value_start + value_length
    if value_end > end:
        raise TruncatedError(
            f"configuration value of {value_length} bytes overruns buffer by {value_end - end}"
        )
    return ConfigEntry(key=key, value=bytes(data[value_start:value_end])), value_end


def unpack_config_section(
    data: BytesLike,
    offset: int = 0,
    end: int | None = None,
    *,
    limits: CodecLimits = DEFAULT_LIMITS,
) -> ConfigSection:
    """Decode a configuration section that fills ``data[offset:end]`` exactly."""
    end = _resolve_end(data, offset, end)
    if offset >= end:
        raise TruncatedError("missing configuration section marker")

    if data[offset] == NO_CONFIGURATIONS_MARKER:
        if end - offset != 1:
            raise LengthMismatchError(
                f"{end - offset - 1} trailing byte(s) after absent configuration marker"
            )
        return NO_CONFIGURATIONS

    if end - offset < HEADER_LEN:
        raise TruncatedError("buffer too short for configuration section header")
    if bytes(data[offset : offset + DISCRIMINATOR_LEN]) != HAS_CONFIGURATIONS_DISCRIMINATOR:
        raise InvalidDiscriminatorError("invalid configuration section discriminator")

    declared = unpack_u32(data, offset + DISCRIMINATOR_LEN)
    if declared > limits.max_config_section_bytes:
        raise LengthMismatchError(
            f"configuration section of {declared} bytes exceeds limit "
            f"{limits.max_config_section_bytes}"
        )
    payload_start = offset + HEADER_LEN
    if payload_start + declared != end:
        raise LengthMismatchError(
            f"configuration length {declared} does not match remaining {end - payload_start} bytes"
        )
    if declared == 0:
        raise LengthMismatchError("present configuration section is empty")

    entries: list[ConfigEntry] = []
    cursor = payload_start
    while cursor < end:
        item, cursor = unpack_config_entry(data, cursor, end)
        entries.append(item)
    return Configurations(tuple(entries))


def unpack_key_section(
    data: BytesLike,
    offset: int = 0,
    end: int | None = None,
    *,
    limits: CodecLimits = DEFAULT_LIMITS,
) -> tuple[KeySection, int]:
    """Decode a key section; returns it and the offset past the key bytes."""
    end = _resolve_end(data, offset, end)
    if end - offset < HEADER_LEN:
        raise TruncatedError("buffer too short for key section header")
    discriminator = bytes(data[offset : offset + DISCRIMINATOR_LEN])
    key_length = unpack_u32(data, offset + DISCRIMINATOR_LEN)
    if key_length > limits.max_key_bytes:
        raise LengthMismatchError(f"key of {key_length} bytes exceeds limit {limits.max_key_bytes}")
    key_start = offset + HEADER_LEN
    key_end = key_start + key_length
    if key_end > end:
        raise TruncatedError(f"key of {key_length} bytes overruns buffer by {key_end - end}")
    return KeySection(discriminator=discriminator, key=bytes(data[key_start:key_end])), key_end


def unpack_entry(
    data: BytesLike,
    offset: int = 0,
    *,
    limits: CodecLimits = DEFAULT_LIMITS,
) -> tuple[KeystoreEntry, int]:
    """Decode the entry starting at ``offset``; returns it and the offset of the next entry."""
    if offset < 0 or len(data) - offset < HEADER_LEN:
        raise TruncatedError("buffer too short for keystore entry header")
    if bytes(data[offset : offset + DISCRIMINATOR_LEN]) != ENTRY_DISCRIMINATOR:
        raise InvalidDiscriminatorError("invalid keystore entry discriminator")

    length = unpack_u32(data, offset + DISCRIMINATOR_LEN)
    body_start = offset + HEADER_LEN
    entry_end = body_start + length
    if entry_end > len(data):
        raise TruncatedError(
            f"keystore entry of {length} bytes overruns buffer by {entry_end - len(data)}"
        )

    key, key_end = unpack_key_section(data, body_start, entry_end, limits=limits)
    config = unpack_config_section(data, key_end, entry_end, limits=limits)
    return KeystoreEntry(key=key, config=config), entry_end


def _as_bytes(value: BytesLike, what: str) -> bytes:
    if not isinstance(value, (bytes, bytearray, memoryview)):
        raise TypeError(f"{what} must be bytes")
    return bytes(value)


def _check_u32(value: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError("u32 value must be an integer")
    if value < 0 or value > U32_MAX:
        raise LengthMismatchError(f"value {value} does not fit in u32")


def _put(buffer: bytearray, offset: int, data: bytes) -> int:
    end = offset + len(data)
    buffer[offset:end] = data
    return end


def _put_u32(buffer: bytearray, offset: int, value: int) -> int:
    _check_u32(value)
    _U32.pack_into(buffer, offset, value)
    return offset + U32_LEN


def _resolve_end(data: BytesLike, offset: int, end: int | None) -> int:
    size = len(data)
    if end is None:
        end = size
    if offset < 0 or end > size or offset > end:
        raise TruncatedError(f"range [{offset}:{end}] is outside a {size}-byte buffer")
    return end
