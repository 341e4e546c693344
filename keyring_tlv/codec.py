"""Keystore document export/import for other runtimes (JSON or CBOR).

A document is ``{"version": 1, "entries": [...]}`` where each entry is
``{"algorithm": name, "key": b64url, "config": {field: b64url}}``. Raw bytes
never appear in a document, so the JSON and CBOR forms carry the same values.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from .algorithm import DEFAULT_REGISTRY, AlgorithmRegistry
from .constants import FORMAT_VERSION, SUPPORTED_DOCUMENT_ENCODINGS
from .keystore import Keystore
from .tlv import TLVError
from .utils import b64url_decode, b64url_encode, canonical_json_bytes

try:
    import cbor2
except Exception:  # pragma: no cover - optional dependency
    cbor2 = None


class CodecError(ValueError):
    """Raised on document encoding/decoding failures."""


def has_cbor_support() -> bool:
    return cbor2 is not None


def keystore_to_document(
    keystore: Keystore,
    *,
    registry: AlgorithmRegistry = DEFAULT_REGISTRY,
) -> dict[str, Any]:
    entries: list[dict[str, Any]] = []
    for variant in keystore:
        registry.require_registered(variant)
        entries.append(
            {
                "algorithm": variant.NAME,
                "key": b64url_encode(variant.key),
                "config": {name: b64url_encode(value) for name, value in variant.config_values().items()},
            }
        )
    return {"version": FORMAT_VERSION, "entries": entries}


def keystore_from_document(
    document: dict[str, Any],
    *,
    registry: AlgorithmRegistry = DEFAULT_REGISTRY,
) -> Keystore:
    keystore = Keystore()
    for index, raw in enumerate(_document_entries(document)):
        if not isinstance(raw, dict):
            raise CodecError(f"entries[{index}] must be an object")
        name = raw.get("algorithm")
        key = raw.get("key")
        config = raw.get("config", {})
        if not isinstance(name, str) or not isinstance(key, str):
            raise CodecError(f"entries[{index}] needs string algorithm and key")
        if not isinstance(config, dict) or not all(isinstance(v, str) for v in config.values()):
            raise CodecError(f"entries[{index}].config must map names to strings")
        try:
            algorithm = registry.by_name(name)
            values = {field: b64url_decode(value) for field, value in config.items()}
            keystore.add(algorithm.from_parts(b64url_decode(key), values))
        except (TLVError, ValueError) as exc:
            raise CodecError(f"entries[{index}]: {exc}") from exc
    return keystore


def encode_document(document: dict[str, Any], encoding: str = "json") -> bytes:
    """Serialize a keystore document canonically; the header is checked first."""
    _document_entries(document)
    _check_encoding(encoding)
    if encoding == "json":
        return canonical_json_bytes(document)
    try:
        return _require_cbor().dumps(document, canonical=True)
    except Exception as exc:
        raise CodecError(f"failed to encode CBOR keystore document: {exc}") from exc


def decode_document(data: bytes, encoding: str = "json") -> dict[str, Any]:
    """Parse a keystore document and check its version and entries header."""
    _check_encoding(encoding)
    try:
        if encoding == "json":
            document = json.loads(data.decode("utf-8") if isinstance(data, bytes) else data)
        else:
            document = _require_cbor().loads(data)
    except CodecError:
        raise
    except Exception as exc:
        raise CodecError(f"invalid {encoding.upper()} keystore document: {exc}") from exc
    _document_entries(document)
    return document


def encode_keystore(
    keystore: Keystore,
    *,
    encoding: str = "json",
    registry: AlgorithmRegistry = DEFAULT_REGISTRY,
) -> bytes:
    return encode_document(keystore_to_document(keystore, registry=registry), encoding=encoding)


def decode_keystore(
    data: bytes,
    *,
    encoding: str = "json",
    registry: AlgorithmRegistry = DEFAULT_REGISTRY,
) -> Keystore:
    return keystore_from_document(decode_document(data, encoding=encoding), registry=registry)


def detect_encoding_from_path(path: str | Path | None) -> str:
    if path is None:
        return "json"
    if Path(path).suffix.lower() == ".cbor":
        return "cbor"
    return "json"


def _document_entries(document: Any) -> list[Any]:
    if not isinstance(document, dict):
        raise CodecError("keystore document must be an object")
    version = document.get("version")
    if isinstance(version, bool) or version != FORMAT_VERSION:
        raise CodecError(f"unsupported keystore document version: {version!r}")
    entries = document.get("entries")
    if not isinstance(entries, list):
        raise CodecError("keystore document entries must be an array")
    return entries


def _check_encoding(encoding: str) -> None:
    if encoding not in SUPPORTED_DOCUMENT_ENCODINGS:
        raise CodecError(f"unsupported encoding: {encoding}")


def _require_cbor() -> Any:
    if cbor2 is None:
        raise CodecError("CBOR support unavailable: install 'cbor2'")
    return cbor2
