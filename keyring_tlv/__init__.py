"""Keystore TLV codec and algorithm registry."""

from .algorithm import (
    DEFAULT_REGISTRY,
    EXTENDED_REGISTRY,
    AeadConfigurations,
    AlgorithmRegistry,
    ChaCha20Poly1305,
    ComplexAlgorithm,
    ConfigField,
    Curve25519,
    DuplicateDiscriminatorError,
    Ed25519,
    InvalidKeyLengthError,
    KeyAlgorithm,
    MissingConfigurationError,
    RegistryError,
    Rsa,
    UnrecognizedAlgorithmError,
    X25519,
)
from .codec import (
    CodecError,
    decode_document,
    decode_keystore,
    encode_document,
    encode_keystore,
    keystore_from_document,
    keystore_to_document,
)
from .keyring import Keyring, KeystoreNotFoundError
from .keystore import Keystore, KeystoreEntryNotFoundError, KeystoreError, pack_keystore, unpack_keystore
from .limits import DEFAULT_LIMITS, CodecLimits, LimitsError, parse_codec_limits
from .storage import FileKeystoreStorage, MemoryKeystoreStorage, SQLiteKeystoreStorage, StorageError
from .tlv import (
    ENTRY_DISCRIMINATOR,
    HAS_CONFIGURATIONS_DISCRIMINATOR,
    NO_CONFIGURATIONS,
    ConfigEntry,
    Configurations,
    InvalidDiscriminatorError,
    KeySection,
    KeystoreEntry,
    LengthMismatchError,
    NoConfigurations,
    TLVError,
    TruncatedError,
    pack_entry,
    unpack_entry,
)

__all__ = [
    "DEFAULT_REGISTRY",
    "EXTENDED_REGISTRY",
    "AeadConfigurations",
    "AlgorithmRegistry",
    "ChaCha20Poly1305",
    "ComplexAlgorithm",
    "ConfigField",
    "Curve25519",
    "DuplicateDiscriminatorError",
    "Ed25519",
    "InvalidKeyLengthError",
    "KeyAlgorithm",
    "MissingConfigurationError",
    "RegistryError",
    "Rsa",
    "UnrecognizedAlgorithmError",
    "X25519",
    "CodecError",
    "decode_document",
    "decode_keystore",
    "encode_document",
    "encode_keystore",
    "keystore_from_document",
    "keystore_to_document",
    "Keyring",
    "KeystoreNotFoundError",
    "Keystore",
    "KeystoreEntryNotFoundError",
    "KeystoreError",
    "pack_keystore",
    "unpack_keystore",
    "DEFAULT_LIMITS",
    "CodecLimits",
    "LimitsError",
    "parse_codec_limits",
    "FileKeystoreStorage",
    "MemoryKeystoreStorage",
    "SQLiteKeystoreStorage",
    "StorageError",
    "ENTRY_DISCRIMINATOR",
    "HAS_CONFIGURATIONS_DISCRIMINATOR",
    "NO_CONFIGURATIONS",
    "ConfigEntry",
    "Configurations",
    "InvalidDiscriminatorError",
    "KeySection",
    "KeystoreEntry",
    "LengthMismatchError",
    "NoConfigurations",
    "TLVError",
    "TruncatedError",
    "pack_entry",
    "unpack_entry",
]

__version__ = "0.1.0"
