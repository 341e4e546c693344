"""Small utility helpers."""

from __future__ import annotations

import base64
import binascii
import hashlib
import json
from typing import Any

from .constants import DISCRIMINATOR_LEN


def discriminator_for(hash_input: str) -> bytes:
    """Return the 8-byte discriminator for a hash-input string."""
    return hashlib.sha256(hash_input.encode("utf-8")).digest()[:DISCRIMINATOR_LEN]


def canonical_json_bytes(value: Any) -> bytes:
    return json.dumps(
        value,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    ).encode("utf-8")


def b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def b64url_decode(data: str) -> bytes:
    padding = "=" * ((4 - len(data) % 4) % 4)
    try:
        return base64.urlsafe_b64decode(data + padding)
    except (binascii.Error, ValueError) as exc:
        raise ValueError(f"invalid base64url value: {exc}") from exc


def parse_hex(value: str) -> bytes:
    cleaned = value.strip().replace(" ", "").replace(":", "")
    if cleaned.lower().startswith("0x"):
        cleaned = cleaned[2:]
    try:
        return bytes.fromhex(cleaned)
    except ValueError as exc:
        raise ValueError(f"invalid hex value: {value!r}") from exc


def json_dumps_pretty(value: Any) -> str:
    return json.dumps(value, indent=2, ensure_ascii=False, sort_keys=True)
