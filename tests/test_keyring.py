from __future__ import annotations

import unittest

from keyring_tlv.algorithm import AlgorithmRegistry, Curve25519, UnrecognizedAlgorithmError
from keyring_tlv.keyring import Keyring, KeystoreNotFoundError
from keyring_tlv.keystore import KeystoreEntryNotFoundError, pack_keystore
from keyring_tlv.limits import CodecLimits
from keyring_tlv.storage import MemoryKeystoreStorage, StorageError
from keyring_tlv.tlv import LengthMismatchError, TruncatedError

from tests.test_helpers import make_complex, make_curve25519, make_keystore, make_rsa


class KeyringTests(unittest.TestCase):
    def setUp(self) -> None:
        self.storage = MemoryKeystoreStorage()
        self.keyring = Keyring(self.storage)

    def test_create_stores_empty_buffer(self) -> None:
        self.keyring.create_keystore("authority-a")
        self.assertTrue(self.keyring.has_keystore("authority-a"))
        self.assertEqual(self.keyring.get_keystore_bytes("authority-a"), b"")
        self.assertEqual(len(self.keyring.get_keystore("authority-a")), 0)

    def test_create_twice_rejected(self) -> None:
        self.keyring.create_keystore("authority-a")
        with self.assertRaises(StorageError):
            self.keyring.create_keystore("authority-a")

    def test_missing_keystore(self) -> None:
        self.assertFalse(self.keyring.has_keystore("authority-a"))
        with self.assertRaises(KeystoreNotFoundError):
            self.keyring.get_keystore("authority-a")
        with self.assertRaises(KeystoreNotFoundError):
            self.keyring.add_entry("authority-a", make_rsa())
        with self.assertRaises(KeystoreNotFoundError):
            self.keyring.delete_keystore("authority-a")

    def test_add_entries_rewrites_whole_buffer(self) -> None:
        self.keyring.create_keystore("authority-a")
        for variant in make_keystore():
            self.keyring.add_entry("authority-a", variant)
        self.assertEqual(self.storage.read("authority-a"), make_keystore().pack())
        self.assertEqual(self.keyring.get_keystore("authority-a").entries, make_keystore().entries)

    def test_remove_entry(self) -> None:
        self.keyring.create_keystore("authority-a")
        self.keyring.add_entry("authority-a", make_curve25519())
        keystore = self.keyring.add_entry("authority-a", make_complex())
        self.assertEqual(len(keystore), 2)

        keystore = self.keyring.remove_entry("authority-a", make_curve25519())
        self.assertEqual(keystore.entries, [make_complex()])
        self.assertEqual(self.storage.read("authority-a"), pack_keystore([make_complex()]))

    def test_remove_missing_entry_leaves_buffer(self) -> None:
        self.keyring.create_keystore("authority-a")
        self.keyring.add_entry("authority-a", make_rsa())
        before = self.storage.read("authority-a")
        with self.assertRaises(KeystoreEntryNotFoundError):
            self.keyring.remove_entry("authority-a", make_curve25519())
        self.assertEqual(self.storage.read("authority-a"), before)

    def test_failed_add_leaves_buffer(self) -> None:
        keyring = Keyring(self.storage, limits=CodecLimits(max_entries=1))
        keyring.create_keystore("authority-a")
        keyring.add_entry("authority-a", make_rsa())
        with self.assertRaises(LengthMismatchError):
            keyring.add_entry("authority-a", make_curve25519())
        self.assertEqual(len(keyring.get_keystore("authority-a")), 1)

    def test_corrupted_buffer_surfaces_decode_error(self) -> None:
        self.storage.write("authority-a", make_keystore().pack()[:-3])
        with self.assertRaises(TruncatedError):
            self.keyring.get_keystore("authority-a")

    def test_registry_is_applied_on_read(self) -> None:
        self.storage.write("authority-a", make_keystore().pack())
        curve_only = AlgorithmRegistry((Curve25519,))
        with self.assertRaises(UnrecognizedAlgorithmError):
            Keyring(self.storage, registry=curve_only).get_keystore("authority-a")

    def test_delete_keystore(self) -> None:
        self.keyring.create_keystore("authority-a")
        self.keyring.delete_keystore("authority-a")
        self.assertFalse(self.keyring.has_keystore("authority-a"))


if __name__ == "__main__":
    unittest.main()
