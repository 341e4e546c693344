"""Decoder/encoder size limits."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

from .constants import DEFAULT_CODEC_LIMITS, U32_MAX


class LimitsError(ValueError):
    """Raised on invalid limits configuration."""


@dataclass(frozen=True, slots=True)
class CodecLimits:
    """Upper bounds enforced on every pack/unpack call."""

    max_keystore_bytes: int = DEFAULT_CODEC_LIMITS["max_keystore_bytes"]
    max_entries: int = DEFAULT_CODEC_LIMITS["max_entries"]
    max_config_section_bytes: int = DEFAULT_CODEC_LIMITS["max_config_section_bytes"]
    max_key_bytes: int = DEFAULT_CODEC_LIMITS["max_key_bytes"]

    def __post_init__(self) -> None:
        for name, value in asdict(self).items():
            if not isinstance(value, int) or isinstance(value, bool):
                raise LimitsError(f"{name} must be an integer")
            if value <= 0:
                raise LimitsError(f"{name} must be positive")
            if value > U32_MAX:
                raise LimitsError(f"{name} cannot exceed {U32_MAX}")

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


DEFAULT_LIMITS = CodecLimits()


def parse_codec_limits(raw: dict[str, Any]) -> CodecLimits:
    """Parse limits from a JSON-compatible mapping; missing keys keep defaults."""
    if not isinstance(raw, dict):
        raise LimitsError("codec limits must be an object")

    unknown = sorted(set(raw) - set(DEFAULT_CODEC_LIMITS))
    if unknown:
        raise LimitsError(f"unknown codec limit(s): {', '.join(unknown)}")

    merged = dict(DEFAULT_CODEC_LIMITS)
    merged.update(raw)
    return CodecLimits(**merged)


def load_codec_limits(path: str | Path) -> CodecLimits:
    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise LimitsError(f"invalid limits file {path}: {exc}") from exc
    return parse_codec_limits(raw)
