from __future__ import annotations

import unittest

from keyring_tlv.algorithm import EXTENDED_REGISTRY, UnrecognizedAlgorithmError
from keyring_tlv.codec import (
    CodecError,
    decode_document,
    decode_keystore,
    detect_encoding_from_path,
    encode_document,
    encode_keystore,
    has_cbor_support,
    keystore_from_document,
    keystore_to_document,
)
from keyring_tlv.keystore import Keystore
from keyring_tlv.utils import b64url_encode

from tests.test_helpers import make_all_variants, make_keystore


class DocumentTests(unittest.TestCase):
    def test_document_shape(self) -> None:
        keystore = make_keystore()
        document = keystore_to_document(keystore)
        self.assertEqual(document["version"], 1)
        self.assertEqual(
            [entry["algorithm"] for entry in document["entries"]],
            ["curve25519", "rsa", "complex-algorithm"],
        )
        self.assertEqual(document["entries"][0]["config"], {})
        self.assertEqual(document["entries"][0]["key"], b64url_encode(keystore.entries[0].key))
        self.assertEqual(set(document["entries"][2]["config"]), {"nonce", "aad"})

    def test_document_roundtrip(self) -> None:
        keystore = Keystore(make_all_variants())
        document = keystore_to_document(keystore, registry=EXTENDED_REGISTRY)
        restored = keystore_from_document(document, registry=EXTENDED_REGISTRY)
        self.assertEqual(restored.entries, keystore.entries)

    def test_export_checks_registration(self) -> None:
        with self.assertRaises(UnrecognizedAlgorithmError):
            keystore_to_document(Keystore(make_all_variants()))

    def test_empty_keystore_document(self) -> None:
        document = keystore_to_document(Keystore())
        self.assertEqual(document, {"version": 1, "entries": []})
        self.assertEqual(len(keystore_from_document(document)), 0)

    def test_rejects_unsupported_version(self) -> None:
        document = keystore_to_document(make_keystore())
        document["version"] = 2
        with self.assertRaises(CodecError):
            keystore_from_document(document)

    def test_rejects_unknown_algorithm(self) -> None:
        document = keystore_to_document(make_keystore())
        document["entries"][0]["algorithm"] = "dsa"
        with self.assertRaises(CodecError):
            keystore_from_document(document)

    def test_rejects_missing_configuration(self) -> None:
        document = keystore_to_document(make_keystore())
        del document["entries"][2]["config"]["aad"]
        with self.assertRaises(CodecError):
            keystore_from_document(document)

    def test_rejects_wrong_key_length(self) -> None:
        document = keystore_to_document(make_keystore())
        document["entries"][1]["key"] = b64url_encode(b"short")
        with self.assertRaises(CodecError):
            keystore_from_document(document)

    def test_rejects_malformed_entries(self) -> None:
        for entries in ("nope", [1], [{"algorithm": "rsa"}], [{"algorithm": "rsa", "key": "AA", "config": []}]):
            with self.subTest(entries=entries):
                with self.assertRaises(CodecError):
                    keystore_from_document({"version": 1, "entries": entries})


class EncodingTests(unittest.TestCase):
    def test_json_roundtrip(self) -> None:
        keystore = make_keystore()
        encoded = encode_document(keystore_to_document(keystore), encoding="json")
        restored = keystore_from_document(decode_document(encoded, encoding="json"))
        self.assertEqual(restored.entries, keystore.entries)

    def test_json_encoding_is_canonical(self) -> None:
        document = keystore_to_document(make_keystore())
        self.assertEqual(encode_document(document), encode_document(dict(reversed(list(document.items())))))
        self.assertNotIn(b" ", encode_document(document))

    def test_cbor_roundtrip(self) -> None:
        if not has_cbor_support():
            self.skipTest("cbor2 not installed")
        keystore = make_keystore()
        encoded = encode_document(keystore_to_document(keystore), encoding="cbor")
        restored = keystore_from_document(decode_document(encoded, encoding="cbor"))
        self.assertEqual(restored.entries, keystore.entries)

    def test_keystore_helpers_roundtrip(self) -> None:
        keystore = make_keystore()
        encoded = encode_keystore(keystore)
        self.assertEqual(decode_keystore(encoded).entries, keystore.entries)

    def test_invalid_json(self) -> None:
        with self.assertRaises(CodecError):
            decode_document(b"{")
        with self.assertRaises(CodecError):
            decode_document(b"[]")

    def test_decode_checks_document_header(self) -> None:
        for raw in (b"{}", b'{"version":2,"entries":[]}', b'{"version":true,"entries":[]}', b'{"version":1}'):
            with self.subTest(raw=raw):
                with self.assertRaises(CodecError):
                    decode_document(raw)
        self.assertEqual(decode_document(b'{"version":1,"entries":[]}'), {"version": 1, "entries": []})

    def test_encode_checks_document_header(self) -> None:
        with self.assertRaises(CodecError):
            encode_document({"entries": []})

    def test_unsupported_encoding(self) -> None:
        with self.assertRaises(CodecError):
            encode_document({"version": 1, "entries": []}, encoding="yaml")
        with self.assertRaises(CodecError):
            decode_document(b"{}", encoding="yaml")

    def test_detect_encoding_from_path(self) -> None:
        self.assertEqual(detect_encoding_from_path("keys.cbor"), "cbor")
        self.assertEqual(detect_encoding_from_path("KEYS.CBOR"), "cbor")
        self.assertEqual(detect_encoding_from_path("keys.json"), "json")
        self.assertEqual(detect_encoding_from_path(None), "json")


if __name__ == "__main__":
    unittest.main()
