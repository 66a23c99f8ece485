"""
vaultsync CLI - offline tooling for envelopes and the record store.

Usage:
    vaultsync keygen [--length N]
    vaultsync encrypt [--key K] [--input FILE]
    vaultsync decrypt ENVELOPE [--key K]
    vaultsync dump --db PATH --owner OWNER [--decrypt] [--key K] [--json]
    vaultsync status --db PATH --owner OWNER [--json]

The key defaults to the ENCRYPT_KEY environment variable, the same secret
the sync server is configured with.
"""

import argparse
import json
import logging
import os
import sys
from pathlib import Path

from vaultsync.catalog import MetadataCatalog
from vaultsync.crypto import EnvelopeCodec, EnvelopeError, generate_key
from vaultsync.storage import SQLiteRecordStore, TransientStoreFailure
from vaultsync.sync_engine import SyncEngine
from vaultsync.types import format_datetime

logging.basicConfig(level=logging.WARNING)
logger = logging.getLogger(__name__)

KEY_ENV_VAR = "ENCRYPT_KEY"


def _codec(args) -> EnvelopeCodec:
    key = getattr(args, "key", None) or os.environ.get(KEY_ENV_VAR)
    if not key:
        raise EnvelopeError(f"No key given; pass --key or set {KEY_ENV_VAR}")
    return EnvelopeCodec(key)


def _open_store(args) -> SQLiteRecordStore:
    db_path = Path(args.db).expanduser()
    if not db_path.exists():
        raise FileNotFoundError(f"Database not found: {db_path}")
    return SQLiteRecordStore(db_path)


def cmd_keygen(args):
    """Print a fresh encryption secret."""
    print(generate_key(args.length))


def cmd_encrypt(args):
    """Encrypt stdin (or a file) into an envelope."""
    codec = _codec(args)
    if args.input:
        plaintext = Path(args.input).read_bytes()
    else:
        plaintext = sys.stdin.buffer.read()
    print(codec.encrypt(plaintext))


def cmd_decrypt(args):
    """Decrypt an envelope to stdout."""
    codec = _codec(args)
    plaintext = codec.decrypt(args.envelope.strip())
    sys.stdout.buffer.write(plaintext)
    sys.stdout.flush()


def cmd_dump(args):
    """List an owner's stored records, optionally decrypting payloads."""
    codec = _codec(args) if args.decrypt else None
    catalog = MetadataCatalog(_open_store(args))

    rows = []
    for record in catalog.list_records(args.owner):
        row = {
            "id": record.id,
            "version": record.version,
            "last_modified_at": format_datetime(record.last_modified_at),
            "is_deleted": record.is_deleted,
        }
        if codec is not None:
            try:
                row["plaintext"] = codec.decrypt(record.payload).decode("utf-8", "replace")
            except EnvelopeError as e:
                row["error"] = f"{type(e).__name__}: {e}"
        else:
            row["payload"] = record.payload
        rows.append(row)

    if args.json:
        print(json.dumps(rows, indent=2))
        return

    if not rows:
        print(f"No records for {args.owner}")
        return
    for row in rows:
        marker = "✗" if row["is_deleted"] else "•"
        print(f"{marker} {row['id']}  v{row['version']}  {row['last_modified_at']}")
        if "plaintext" in row:
            print(f"    {row['plaintext']}")
        elif "error" in row:
            print(f"    ! {row['error']}")


def cmd_status(args):
    """Show an owner's sync status."""
    status = SyncEngine(_open_store(args)).status(args.owner)
    data = {
        "owner": status.owner,
        "last_sync_at": format_datetime(status.last_sync_at) if status.last_sync_at else None,
        "item_count": status.item_count,
        "sync_token": status.sync_token,
    }
    if args.json:
        print(json.dumps(data, indent=2))
    else:
        print(f"Owner:      {data['owner']}")
        print(f"Last sync:  {data['last_sync_at'] or 'never'}")
        print(f"Records:    {data['item_count']}")
        print(f"Sync token: {data['sync_token'] or '-'}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vaultsync",
        description="Offline tooling for vaultsync envelopes and record stores",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    p_keygen = subparsers.add_parser("keygen", help="Generate an encryption secret")
    p_keygen.add_argument("--length", type=int, default=32, choices=(16, 24, 32))

    p_encrypt = subparsers.add_parser("encrypt", help="Encrypt stdin into an envelope")
    p_encrypt.add_argument("--key", help=f"Encryption secret (default: ${KEY_ENV_VAR})")
    p_encrypt.add_argument("--input", "-i", help="Read plaintext from this file")

    p_decrypt = subparsers.add_parser("decrypt", help="Decrypt an envelope")
    p_decrypt.add_argument("envelope")
    p_decrypt.add_argument("--key", help=f"Encryption secret (default: ${KEY_ENV_VAR})")

    p_dump = subparsers.add_parser("dump", help="List stored records for an owner")
    p_dump.add_argument("--db", required=True, help="Path to the server database")
    p_dump.add_argument("--owner", required=True)
    p_dump.add_argument("--decrypt", action="store_true", help="Decrypt payloads")
    p_dump.add_argument("--key", help=f"Encryption secret (default: ${KEY_ENV_VAR})")
    p_dump.add_argument("--json", action="store_true")

    p_status = subparsers.add_parser("status", help="Show sync status for an owner")
    p_status.add_argument("--db", required=True, help="Path to the server database")
    p_status.add_argument("--owner", required=True)
    p_status.add_argument("--json", action="store_true")

    return parser


COMMANDS = {
    "keygen": cmd_keygen,
    "encrypt": cmd_encrypt,
    "decrypt": cmd_decrypt,
    "dump": cmd_dump,
    "status": cmd_status,
}


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    try:
        COMMANDS[args.command](args)
    except EnvelopeError as e:
        print(f"✗ {type(e).__name__}: {e}", file=sys.stderr)
        return 1
    except (FileNotFoundError, TransientStoreFailure) as e:
        print(f"✗ {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
