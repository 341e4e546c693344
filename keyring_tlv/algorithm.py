"""Registered key algorithms and the discriminator registry.

Each algorithm is a frozen dataclass carrying its key bytes and, where the
algorithm needs one, a configuration object. The registry maps the 8-byte
algorithm discriminator found in a key section to the variant class and is
read-only once built.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import ClassVar

from .constants import ALGORITHM_HASH_PREFIX, CONFIG_FIELD_HASH_PREFIX
from .tlv import (
    ConfigEntry,
    Configurations,
    InvalidDiscriminatorError,
    KeySection,
    KeystoreEntry,
    LengthMismatchError,
    TLVError,
    as_discriminator,
    make_config_section,
)
from .utils import discriminator_for


class RegistryError(TLVError):
    """Raised on algorithm registry lookups and registration."""


class UnrecognizedAlgorithmError(RegistryError):
    """No registered algorithm owns a discriminator."""


class MissingConfigurationError(RegistryError):
    """A required configuration field is absent."""


class DuplicateDiscriminatorError(RegistryError):
    """A discriminator or name is registered twice."""


class InvalidKeyLengthError(LengthMismatchError):
    """Key bytes do not match the algorithm's fixed key size."""


@dataclass(frozen=True, slots=True)
class ConfigField:
    """A named configuration field and its wire discriminator."""

    name: str
    discriminator: bytes
    length: int

    @classmethod
    def named(cls, name: str, length: int) -> ConfigField:
        return cls(name=name, discriminator=discriminator_for(CONFIG_FIELD_HASH_PREFIX + name), length=length)


NONCE_FIELD = ConfigField.named("nonce", 12)
AAD_FIELD = ConfigField.named("aad", 12)


class KeyAlgorithm:
    """Base for algorithm variants.

    Subclasses are frozen dataclasses with a ``key`` field and declare
    ``NAME``, ``DISCRIMINATOR``, ``KEY_LENGTH`` and, when they carry a
    configuration object, ``CONFIG_FIELDS``.
    """

    __slots__ = ()

    NAME: ClassVar[str]
    DISCRIMINATOR: ClassVar[bytes]
    KEY_LENGTH: ClassVar[int]
    CONFIG_FIELDS: ClassVar[tuple[ConfigField, ...]] = ()

    key: bytes

    def __post_init__(self) -> None:
        if not isinstance(self.key, (bytes, bytearray, memoryview)):
            raise TypeError(f"{self.NAME} key must be bytes")
        key = bytes(self.key)
        if len(key) != self.KEY_LENGTH:
            raise InvalidKeyLengthError(
                f"{self.NAME} key must be {self.KEY_LENGTH} bytes, got {len(key)}"
            )
        object.__setattr__(self, "key", key)

    def config_values(self) -> dict[str, bytes]:
        return {}

    @classmethod
    def from_parts(cls, key: bytes, config: Mapping[str, bytes]) -> KeyAlgorithm:
        if config:
            raise InvalidDiscriminatorError(f"{cls.NAME} takes no configuration")
        return cls(key=key)

    def to_entry(self) -> KeystoreEntry:
        values = self.config_values()
        entries = [ConfigEntry(key=field.discriminator, value=values[field.name]) for field in self.CONFIG_FIELDS]
        return KeystoreEntry(
            key=KeySection(discriminator=self.DISCRIMINATOR, key=self.key),
            config=make_config_section(entries),
        )

    @classmethod
    def from_entry(cls, entry: KeystoreEntry) -> KeyAlgorithm:
        if entry.key.discriminator != cls.DISCRIMINATOR:
            raise UnrecognizedAlgorithmError(
                f"entry discriminator {entry.key.discriminator.hex()} is not {cls.NAME}"
            )
        return cls.from_parts(entry.key.key, _bind_config_fields(cls, entry))


def _bind_config_fields(cls: type[KeyAlgorithm], entry: KeystoreEntry) -> dict[str, bytes]:
    # Fields are matched by key discriminator, never by position.
    present: dict[bytes, bytes] = {}
    if isinstance(entry.config, Configurations):
        for item in entry.config.entries:
            if item.key in present:
                raise InvalidDiscriminatorError(f"duplicate configuration field {item.key.hex()}")
            present[item.key] = item.value

    values: dict[str, bytes] = {}
    for field in cls.CONFIG_FIELDS:
        value = present.pop(field.discriminator, None)
        if value is None:
            raise MissingConfigurationError(f"{cls.NAME} requires configuration field {field.name!r}")
        values[field.name] = value

    if present:
        unexpected = ", ".join(key.hex() for key in present)
        raise InvalidDiscriminatorError(f"unexpected configuration field(s) for {cls.NAME}: {unexpected}")
    return values


@dataclass(frozen=True, slots=True)
class AeadConfigurations:
    """Nonce and associated data for AEAD-style algorithms."""

    nonce: bytes
    aad: bytes

    def __post_init__(self) -> None:
        for field in (NONCE_FIELD, AAD_FIELD):
            raw = getattr(self, field.name)
            if not isinstance(raw, (bytes, bytearray, memoryview)):
                raise TypeError(f"{field.name} must be bytes")
            value = bytes(raw)
            if len(value) != field.length:
                raise LengthMismatchError(f"{field.name} must be {field.length} bytes, got {len(value)}")
            object.__setattr__(self, field.name, value)


class _AeadAlgorithm(KeyAlgorithm):
    __slots__ = ()

    CONFIG_FIELDS = (NONCE_FIELD, AAD_FIELD)

    config: AeadConfigurations

    def __post_init__(self) -> None:
        KeyAlgorithm.__post_init__(self)
        if not isinstance(self.config, AeadConfigurations):
            raise TypeError(f"{self.NAME} config must be AeadConfigurations")

    def config_values(self) -> dict[str, bytes]:
        return {"nonce": self.config.nonce, "aad": self.config.aad}

    @classmethod
    def from_parts(cls, key: bytes, config: Mapping[str, bytes]) -> KeyAlgorithm:
        missing = [field.name for field in cls.CONFIG_FIELDS if field.name not in config]
        if missing:
            raise MissingConfigurationError(f"{cls.NAME} requires configuration field {missing[0]!r}")
        extra = sorted(set(config) - {field.name for field in cls.CONFIG_FIELDS})
        if extra:
            raise InvalidDiscriminatorError(f"unexpected configuration field(s) for {cls.NAME}: {', '.join(extra)}")
        return cls(key=key, config=AeadConfigurations(nonce=config["nonce"], aad=config["aad"]))


@dataclass(frozen=True, slots=True)
class Curve25519(KeyAlgorithm):
    NAME = "curve25519"
    DISCRIMINATOR = discriminator_for(ALGORITHM_HASH_PREFIX + "Curve25519")
    KEY_LENGTH = 32

    key: bytes


@dataclass(frozen=True, slots=True)
class Rsa(KeyAlgorithm):
    NAME = "rsa"
    DISCRIMINATOR = discriminator_for(ALGORITHM_HASH_PREFIX + "RSA")
    KEY_LENGTH = 64

    key: bytes


@dataclass(frozen=True, slots=True)
class X25519(KeyAlgorithm):
    NAME = "x25519"
    DISCRIMINATOR = discriminator_for(ALGORITHM_HASH_PREFIX + "X25519")
    KEY_LENGTH = 32

    key: bytes


@dataclass(frozen=True, slots=True)
class Ed25519(KeyAlgorithm):
    NAME = "ed25519"
    DISCRIMINATOR = discriminator_for(ALGORITHM_HASH_PREFIX + "Ed25519")
    KEY_LENGTH = 32

    key: bytes


@dataclass(frozen=True, slots=True)
class ComplexAlgorithm(_AeadAlgorithm):
    NAME = "complex-algorithm"
    DISCRIMINATOR = discriminator_for(ALGORITHM_HASH_PREFIX + "ComplexAlgorithm")
    KEY_LENGTH = 32

    key: bytes
    config: AeadConfigurations


@dataclass(frozen=True, slots=True)
class ChaCha20Poly1305(_AeadAlgorithm):
    NAME = "chacha20-poly1305"
    DISCRIMINATOR = discriminator_for(ALGORITHM_HASH_PREFIX + "ChaCha20Poly1305")
    KEY_LENGTH = 32

    key: bytes
    config: AeadConfigurations


class AlgorithmRegistry:
    """Read-only mapping of algorithm discriminators to variant classes."""

    __slots__ = ("_by_discriminator", "_by_name")

    def __init__(self, algorithms: Iterable[type[KeyAlgorithm]] = ()) -> None:
        by_discriminator: dict[bytes, type[KeyAlgorithm]] = {}
        by_name: dict[str, type[KeyAlgorithm]] = {}
        for algorithm in algorithms:
            if not (isinstance(algorithm, type) and issubclass(algorithm, KeyAlgorithm)):
                raise TypeError(f"{algorithm!r} is not a KeyAlgorithm subclass")
            discriminator = as_discriminator(algorithm.DISCRIMINATOR)
            if discriminator in by_discriminator:
                raise DuplicateDiscriminatorError(
                    f"discriminator {discriminator.hex()} already registered by "
                    f"{by_discriminator[discriminator].NAME}"
                )
            if algorithm.NAME in by_name:
                raise DuplicateDiscriminatorError(f"algorithm name {algorithm.NAME!r} already registered")
            field_keys = [field.discriminator for field in algorithm.CONFIG_FIELDS]
            if len(set(field_keys)) != len(field_keys):
                raise DuplicateDiscriminatorError(f"{algorithm.NAME} declares duplicate configuration fields")
            by_discriminator[discriminator] = algorithm
            by_name[algorithm.NAME] = algorithm
        self._by_discriminator = MappingProxyType(by_discriminator)
        self._by_name = MappingProxyType(by_name)

    def __iter__(self) -> Iterator[type[KeyAlgorithm]]:
        return iter(self._by_discriminator.values())

    def __len__(self) -> int:
        return len(self._by_discriminator)

    def __contains__(self, discriminator: object) -> bool:
        return discriminator in self._by_discriminator

    def extended(self, *algorithms: type[KeyAlgorithm]) -> AlgorithmRegistry:
        """Return a new registry with ``algorithms`` added after the current ones."""
        return AlgorithmRegistry((*self, *algorithms))

    def get(self, discriminator: bytes) -> type[KeyAlgorithm]:
        algorithm = self._by_discriminator.get(bytes(discriminator))
        if algorithm is None:
            raise UnrecognizedAlgorithmError(f"unrecognized algorithm discriminator {bytes(discriminator).hex()}")
        return algorithm

    def by_name(self, name: str) -> type[KeyAlgorithm]:
        algorithm = self._by_name.get(name)
        if algorithm is None:
            raise UnrecognizedAlgorithmError(f"unrecognized algorithm name {name!r}")
        return algorithm

    def name_for(self, discriminator: bytes) -> str | None:
        algorithm = self._by_discriminator.get(bytes(discriminator))
        return algorithm.NAME if algorithm is not None else None

    def require_registered(self, variant: KeyAlgorithm) -> type[KeyAlgorithm]:
        """Return ``type(variant)`` if that exact class owns its discriminator here."""
        if not isinstance(variant, KeyAlgorithm):
            raise TypeError("keystore records must be KeyAlgorithm instances")
        algorithm = self._by_discriminator.get(variant.DISCRIMINATOR)
        if algorithm is not type(variant):
            raise UnrecognizedAlgorithmError(f"algorithm {variant.NAME!r} is not registered")
        return algorithm

    def to_entry(self, variant: KeyAlgorithm) -> KeystoreEntry:
        self.require_registered(variant)
        return variant.to_entry()

    def from_entry(self, entry: KeystoreEntry) -> KeyAlgorithm:
        return self.get(entry.key.discriminator).from_entry(entry)

    def describe(self) -> list[dict[str, object]]:
        return [
            {
                "name": algorithm.NAME,
                "discriminator": algorithm.DISCRIMINATOR.hex(),
                "key_length": algorithm.KEY_LENGTH,
                "config_fields": [
                    {"name": field.name, "discriminator": field.discriminator.hex(), "length": field.length}
                    for field in algorithm.CONFIG_FIELDS
                ],
            }
            for algorithm in self
        ]


# Discriminators other runtimes already read and write.
DEFAULT_REGISTRY = AlgorithmRegistry((Curve25519, Rsa, ComplexAlgorithm))

# Local additions. Buffers holding these are only readable by peers that
# register the same variants.
EXTENDED_REGISTRY = DEFAULT_REGISTRY.extended(X25519, Ed25519, ChaCha20Poly1305)
