"""CLI entrypoint for keyring-tlv."""

from __future__ import annotations

import argparse
import logging
import pathlib
import sys
from typing import Any

from .algorithm import DEFAULT_REGISTRY, EXTENDED_REGISTRY, KeyAlgorithm, RegistryError
from .codec import decode_keystore, detect_encoding_from_path, encode_keystore, keystore_to_document
from .constants import SUPPORTED_DOCUMENT_ENCODINGS
from .keyring import Keyring
from .keystore import iter_keystore_entries, pack_keystore, unpack_keystore
from .limits import DEFAULT_LIMITS, CodecLimits, load_codec_limits
from .storage import FileKeystoreStorage, KeystoreStorage, SQLiteKeystoreStorage
from .tlv import Configurations
from .utils import json_dumps_pretty, parse_hex


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="keyring-tlv", description="Keystore TLV codec CLI")
    parser.add_argument("--limits-file", help="JSON object overriding codec limits")
    parser.add_argument(
        "--extended-algorithms",
        action="store_true",
        help="Also accept x25519, ed25519 and chacha20-poly1305 records",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    algorithms = subparsers.add_parser("algorithms", help="List registered algorithms")
    algorithms.set_defaults(func=_cmd_algorithms)

    init = subparsers.add_parser("init", help="Create an empty keystore for an authority")
    _add_store_args(init)
    init.set_defaults(func=_cmd_init)

    add = subparsers.add_parser("add", help="Append a key to a keystore")
    _add_store_args(add)
    _add_key_args(add)
    add.set_defaults(func=_cmd_add)

    remove = subparsers.add_parser("remove", help="Remove every matching key from a keystore")
    _add_store_args(remove)
    _add_key_args(remove)
    remove.set_defaults(func=_cmd_remove)

    list_cmd = subparsers.add_parser("list", help="Print a stored keystore as a document")
    _add_store_args(list_cmd)
    list_cmd.set_defaults(func=_cmd_list)

    inspect = subparsers.add_parser("inspect", help="Show the entry layout of a raw keystore buffer")
    inspect.add_argument("--in-file", required=True, help="Raw keystore buffer file")
    inspect.set_defaults(func=_cmd_inspect)

    export = subparsers.add_parser("export", help="Convert a raw keystore buffer to a JSON/CBOR document")
    export.add_argument("--in-file", required=True, help="Raw keystore buffer file")
    export.add_argument("--out-file", help="Document output path (stdout when omitted, JSON only)")
    export.add_argument(
        "--encoding", choices=sorted(SUPPORTED_DOCUMENT_ENCODINGS), help="Defaults from --out-file suffix"
    )
    export.set_defaults(func=_cmd_export)

    import_cmd = subparsers.add_parser("import", help="Convert a JSON/CBOR document to a raw keystore buffer")
    import_cmd.add_argument("--in-file", required=True, help="Document path (.json or .cbor)")
    import_cmd.add_argument("--out-file", required=True, help="Raw keystore buffer output path")
    import_cmd.add_argument(
        "--encoding", choices=sorted(SUPPORTED_DOCUMENT_ENCODINGS), help="Defaults from --in-file suffix"
    )
    import_cmd.set_defaults(func=_cmd_import)

    args = parser.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(levelname)s %(name)s: %(message)s")

    try:
        args.limits = load_codec_limits(args.limits_file) if args.limits_file else DEFAULT_LIMITS
        args.registry = EXTENDED_REGISTRY if args.extended_algorithms else DEFAULT_REGISTRY
        return args.func(args)
    except (ValueError, OSError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2


def _add_store_args(subparser: argparse.ArgumentParser) -> None:
    store = subparser.add_mutually_exclusive_group(required=True)
    store.add_argument("--store-dir", help="Directory holding one keystore file per authority")
    store.add_argument("--store-db", help="SQLite database holding keystores")
    subparser.add_argument("--authority", required=True, help="Keystore owner identifier")


def _add_key_args(subparser: argparse.ArgumentParser) -> None:
    subparser.add_argument("--algorithm", required=True, help="Registered algorithm name")
    subparser.add_argument("--key-hex", required=True, help="Key bytes as hex")
    subparser.add_argument(
        "--config",
        action="append",
        default=[],
        metavar="NAME=HEX",
        help="Configuration field (repeatable), e.g. nonce=000102...",
    )


def _cmd_algorithms(args: argparse.Namespace) -> int:
    print(json_dumps_pretty(args.registry.describe()))
    return 0


def _cmd_init(args: argparse.Namespace) -> int:
    keyring, storage = _open_keyring(args)
    try:
        keyring.create_keystore(args.authority)
    finally:
        _close(storage)
    print("keystore created")
    return 0


def _cmd_add(args: argparse.Namespace) -> int:
    variant = _variant_from_args(args)
    keyring, storage = _open_keyring(args)
    try:
        keystore = keyring.add_entry(args.authority, variant)
    finally:
        _close(storage)
    print(f"added {variant.NAME} key; keystore holds {len(keystore)} entr{'y' if len(keystore) == 1 else 'ies'}")
    return 0


def _cmd_remove(args: argparse.Namespace) -> int:
    variant = _variant_from_args(args)
    keyring, storage = _open_keyring(args)
    try:
        keystore = keyring.remove_entry(args.authority, variant)
    finally:
        _close(storage)
    print(f"removed {variant.NAME} key; keystore holds {len(keystore)} entr{'y' if len(keystore) == 1 else 'ies'}")
    return 0


def _cmd_list(args: argparse.Namespace) -> int:
    keyring, storage = _open_keyring(args)
    try:
        keystore = keyring.get_keystore(args.authority)
    finally:
        _close(storage)
    print(json_dumps_pretty(keystore_to_document(keystore, registry=args.registry)))
    return 0


def _cmd_inspect(args: argparse.Namespace) -> int:
    data = pathlib.Path(args.in_file).read_bytes()
    rows: list[dict[str, Any]] = []
    for start, entry, end in iter_keystore_entries(data, limits=args.limits):
        config_fields: list[dict[str, Any]] = []
        if isinstance(entry.config, Configurations):
            config_fields = [
                {"key": item.key.hex(), "value_length": item.value_length} for item in entry.config.entries
            ]
        rows.append(
            {
                "offset": start,
                "end": end,
                "algorithm": args.registry.name_for(entry.key.discriminator) or "unrecognized",
                "discriminator": entry.key.discriminator.hex(),
                "key_length": entry.key.key_length,
                "config": config_fields if config_fields else None,
            }
        )
    print(json_dumps_pretty({"bytes": len(data), "entries": rows}))
    return 0


def _cmd_export(args: argparse.Namespace) -> int:
    data = pathlib.Path(args.in_file).read_bytes()
    keystore = unpack_keystore(data, registry=args.registry, limits=args.limits)
    encoding = args.encoding or detect_encoding_from_path(args.out_file)
    if args.out_file is None:
        if encoding != "json":
            print("--out-file is required for CBOR output", file=sys.stderr)
            return 2
        print(json_dumps_pretty(keystore_to_document(keystore, registry=args.registry)))
        return 0
    pathlib.Path(args.out_file).write_bytes(encode_keystore(keystore, encoding=encoding, registry=args.registry))
    print(f"exported {len(keystore)} entries to {args.out_file}")
    return 0


def _cmd_import(args: argparse.Namespace) -> int:
    encoding = args.encoding or detect_encoding_from_path(args.in_file)
    keystore = decode_keystore(pathlib.Path(args.in_file).read_bytes(), encoding=encoding, registry=args.registry)
    data = pack_keystore(keystore, registry=args.registry, limits=args.limits)
    pathlib.Path(args.out_file).write_bytes(data)
    print(f"imported {len(keystore)} entries ({len(data)} bytes) to {args.out_file}")
    return 0


def _variant_from_args(args: argparse.Namespace) -> KeyAlgorithm:
    algorithm = args.registry.by_name(args.algorithm)
    config: dict[str, bytes] = {}
    for item in args.config:
        name, sep, value = item.partition("=")
        if not sep or not name:
            raise RegistryError(f"invalid --config {item!r}; expected NAME=HEX")
        config[name] = parse_hex(value)
    return algorithm.from_parts(parse_hex(args.key_hex), config)


def _open_keyring(args: argparse.Namespace) -> tuple[Keyring, KeystoreStorage]:
    storage: KeystoreStorage
    if args.store_db:
        storage = SQLiteKeystoreStorage(args.store_db)
    else:
        storage = FileKeystoreStorage(args.store_dir)
    limits: CodecLimits = args.limits
    return Keyring(storage, registry=args.registry, limits=limits), storage


def _close(storage: KeystoreStorage) -> None:
    close_fn = getattr(storage, "close", None)
    if callable(close_fn):
        close_fn()


if __name__ == "__main__":
    raise SystemExit(main())
