"""Format constants."""

FORMAT_VERSION = 1

DISCRIMINATOR_LEN = 8
U32_MAX = 0xFFFFFFFF

# Discriminators are the first 8 bytes of sha256(hash input). The hash inputs
# are a wire contract with other runtimes and must never change.
ENTRY_HASH_INPUT = "spl_keyring_program:keystore_entry"
HAS_CONFIGURATIONS_HASH_INPUT = "spl_keyring_program:keystore_entry:configuration"
ALGORITHM_HASH_PREFIX = "spl_keyring_program:key:"
CONFIG_FIELD_HASH_PREFIX = "spl_keyring_program:configuration:"

NO_CONFIGURATIONS_MARKER = 0x00

DEFAULT_CODEC_LIMITS = {
    "max_keystore_bytes": 10_485_760,
    "max_entries": 1024,
    # 255 keeps buffers readable by decoders that take a single length byte.
    "max_config_section_bytes": 255,
    "max_key_bytes": 4096,
}

SUPPORTED_DOCUMENT_ENCODINGS = {"json", "cbor"}
