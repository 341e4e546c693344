from __future__ import annotations

import json
import tempfile
import unittest
from pathlib import Path

from keyring_tlv.limits import DEFAULT_LIMITS, CodecLimits, LimitsError, load_codec_limits, parse_codec_limits


class CodecLimitsTests(unittest.TestCase):
    def test_defaults(self) -> None:
        self.assertEqual(
            DEFAULT_LIMITS.as_dict(),
            {
                "max_keystore_bytes": 10_485_760,
                "max_entries": 1024,
                "max_config_section_bytes": 255,
                "max_key_bytes": 4096,
            },
        )

    def test_parse_merges_with_defaults(self) -> None:
        limits = parse_codec_limits({"max_entries": 8})
        self.assertEqual(limits.max_entries, 8)
        self.assertEqual(limits.max_key_bytes, DEFAULT_LIMITS.max_key_bytes)
        self.assertEqual(parse_codec_limits({}), DEFAULT_LIMITS)

    def test_parse_rejects_unknown_keys(self) -> None:
        with self.assertRaises(LimitsError):
            parse_codec_limits({"max_entires": 8})

    def test_parse_rejects_non_object(self) -> None:
        with self.assertRaises(LimitsError):
            parse_codec_limits([("max_entries", 8)])  # type: ignore[arg-type]

    def test_rejects_invalid_values(self) -> None:
        for value in (0, -1, 2**32, True, "16", 1.5):
            with self.subTest(value=value):
                with self.assertRaises(LimitsError):
                    CodecLimits(max_entries=value)  # type: ignore[arg-type]

    def test_load_from_file(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "limits.json"
            path.write_text(json.dumps({"max_config_section_bytes": 4096}), encoding="utf-8")
            self.assertEqual(load_codec_limits(path).max_config_section_bytes, 4096)

            path.write_text("{not json", encoding="utf-8")
            with self.assertRaises(LimitsError):
                load_codec_limits(path)


if __name__ == "__main__":
    unittest.main()
