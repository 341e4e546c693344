from __future__ import annotations

import random
import threading
import time
import unittest
from concurrent.futures import ThreadPoolExecutor, as_completed

from keyring_tlv.algorithm import EXTENDED_REGISTRY
from keyring_tlv.keyring import Keyring
from keyring_tlv.keystore import pack_keystore, unpack_keystore
from keyring_tlv.storage import MemoryKeystoreStorage, StorageError
from keyring_tlv.tlv import TLVError

from tests.test_helpers import make_all_variants, make_curve25519


class SlowReadStorage(MemoryKeystoreStorage):
    """Widens the gap between a keyring's read and its write."""

    def read(self, authority: str) -> bytes | None:
        data = super().read(authority)
        time.sleep(0.01)
        return data


class StressAndFuzzTests(unittest.TestCase):
    def test_keystore_mutation_fuzz_only_raises_codec_errors(self) -> None:
        rng = random.Random(1337)
        base = pack_keystore(make_all_variants(), registry=EXTENDED_REGISTRY)

        def mutate(data: bytes) -> bytes:
            mutated = bytearray(data)
            op = rng.choice(["flip", "delete", "insert", "truncate", "extend", "overwrite"])
            index = rng.randrange(len(mutated))
            if op == "flip":
                mutated[index] ^= 1 << rng.randrange(8)
            elif op == "delete":
                del mutated[index]
            elif op == "insert":
                mutated.insert(index, rng.randrange(256))
            elif op == "truncate":
                del mutated[index:]
            elif op == "extend":
                mutated.extend(rng.randbytes(rng.randint(1, 40)))
            elif op == "overwrite":
                start = max(0, index - 4)
                mutated[start : start + 4] = rng.randbytes(4)
            return bytes(mutated)

        decoded = 0
        for _ in range(2000):
            data = mutate(base)
            try:
                unpack_keystore(data, registry=EXTENDED_REGISTRY)
            except TLVError:
                continue
            decoded += 1
        self.assertLess(decoded, 2000)

    def test_keyring_concurrent_readers(self) -> None:
        storage = MemoryKeystoreStorage()
        keyring = Keyring(storage, registry=EXTENDED_REGISTRY)
        keyring.create_keystore("authority-a")
        for variant in make_all_variants():
            keyring.add_entry("authority-a", variant)

        def read_one(i: int) -> int:
            return len(keyring.get_keystore("authority-a"))

        with ThreadPoolExecutor(max_workers=16) as executor:
            futures = [executor.submit(read_one, i) for i in range(200)]
            counts = [future.result() for future in as_completed(futures)]
        self.assertEqual(set(counts), {len(make_all_variants())})

    def test_keyring_concurrent_writers_keep_every_entry(self) -> None:
        keyring = Keyring(SlowReadStorage())
        keyring.create_keystore("authority-a")
        variants = [make_curve25519(seed) for seed in range(8)]

        threads = [threading.Thread(target=keyring.add_entry, args=("authority-a", variant)) for variant in variants]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        stored = keyring.get_keystore("authority-a").entries
        self.assertEqual(len(stored), len(variants))
        self.assertEqual(set(stored), set(variants))

        removers = [
            threading.Thread(target=keyring.remove_entry, args=("authority-a", variant)) for variant in variants[:4]
        ]
        for thread in removers:
            thread.start()
        for thread in removers:
            thread.join()
        self.assertEqual(set(keyring.get_keystore("authority-a").entries), set(variants[4:]))

    def test_keyring_concurrent_create_succeeds_once(self) -> None:
        keyring = Keyring(SlowReadStorage())
        outcomes: list[str] = []
        outcomes_lock = threading.Lock()

        def create() -> None:
            try:
                keyring.create_keystore("authority-a")
                result = "created"
            except StorageError:
                result = "exists"
            with outcomes_lock:
                outcomes.append(result)

        threads = [threading.Thread(target=create) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        self.assertEqual(sorted(outcomes), ["created", "exists", "exists", "exists"])

    def test_large_keystore_roundtrip(self) -> None:
        variants = [make_curve25519(seed) for seed in range(1000)]
        storage = MemoryKeystoreStorage()
        keyring = Keyring(storage)
        keyring.create_keystore("authority-a")
        storage.write("authority-a", pack_keystore(variants))
        self.assertEqual(keyring.get_keystore("authority-a").entries, variants)


if __name__ == "__main__":
    unittest.main()
