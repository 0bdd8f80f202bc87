#!/usr/bin/env python3
"""
Keystore CLI: manage named private keys stored in a database table.

Usage:
  python -m keystore_cli list
  python -m keystore_cli has <name>
  python -m keystore_cli get <name> [--pem]
  python -m keystore_cli put <name> [--type ed25519|ecdsa|secp256k1|rsa] [--bits N] [--pem-file F]
  python -m keystore_cli delete <name>
  python -m keystore_cli init-table

Options:
  --dsn <url>      Database URL (or PGKS_DSN / DATABASE_URL)
  --table <name>   Keys table (or PGKS_TABLE, default: keys)
"""
import argparse
import base64
import os
import sys
from pathlib import Path
from typing import Optional, Sequence

# Allow running from repo root or from python/
sys.path.insert(0, str(Path(__file__).resolve().parent))

from cryptography.hazmat.primitives import serialization
from dotenv import load_dotenv
from sqlalchemy import text

from pgkeystore import (
    KeystoreConfig,
    KeystoreError,
    SQLKeystore,
    create_table_sql,
    dsn_from_env,
    generate_key,
    marshal_private_key,
)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pgkeystore",
        description="Keystore CLI - manage named private keys in a database table",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  list                 List key names
  has <name>           Check whether a key exists (exit 1 if not)
  get <name>           Print a key (base64 envelope, or PKCS#8 PEM with --pem)
  put <name>           Generate a key (or import --pem-file) and store it
  delete <name>        Delete a key (no error if absent)
  init-table           Create the keys table if it does not exist
        """,
    )
    parser.add_argument("--dsn", default=dsn_from_env(), help="Database URL")
    parser.add_argument("--table", default=os.environ.get("PGKS_TABLE"), help="Keys table name")
    parser.add_argument(
        "command",
        nargs="?",
        choices=["list", "has", "get", "put", "delete", "init-table"],
        help="Command",
    )
    parser.add_argument("name", nargs="?", help="Key name")
    parser.add_argument("--pem", action="store_true", help="get: print PKCS#8 PEM")
    parser.add_argument("--type", default="ed25519", help="put: key type to generate")
    parser.add_argument("--bits", type=int, default=2048, help="put: RSA key size")
    parser.add_argument("--pem-file", help="put: import an unencrypted PEM private key")
    return parser


def _load_pem(path: str):
    with open(path, "rb") as f:
        return serialization.load_pem_private_key(f.read(), password=None)


def main(argv: Optional[Sequence[str]] = None) -> None:
    load_dotenv()
    parser = _build_parser()
    parsed = parser.parse_args(argv)

    cmd = (parsed.command or "").lower()
    if not cmd:
        parser.print_help()
        sys.exit(0)
    if cmd in ("has", "get", "put", "delete") and not parsed.name:
        print(f"Usage: {cmd} <name>", file=sys.stderr)
        sys.exit(1)
    if not parsed.dsn:
        print("No database URL: pass --dsn or set PGKS_DSN", file=sys.stderr)
        sys.exit(1)

    try:
        config = KeystoreConfig.from_env().replace(table=parsed.table)
        with SQLKeystore(parsed.dsn, config) as ks:
            if cmd == "list":
                for name in sorted(ks.list()):
                    print(name)

            elif cmd == "has":
                exists = ks.has(parsed.name)
                print("true" if exists else "false")
                if not exists:
                    sys.exit(1)

            elif cmd == "get":
                key = ks.get(parsed.name)
                if parsed.pem:
                    pem = key.private_bytes(
                        serialization.Encoding.PEM,
                        serialization.PrivateFormat.PKCS8,
                        serialization.NoEncryption(),
                    )
                    print(pem.decode("ascii"), end="")
                else:
                    print(base64.b64encode(marshal_private_key(key)).decode("ascii"))

            elif cmd == "put":
                if parsed.pem_file:
                    key = _load_pem(parsed.pem_file)
                else:
                    key = generate_key(parsed.type, bits=parsed.bits)
                ks.put(parsed.name, key)
                print(f"Stored: {parsed.name}")

            elif cmd == "delete":
                ks.delete(parsed.name)
                print(f"Deleted: {parsed.name}")

            elif cmd == "init-table":
                ddl = create_table_sql(ks.table, ks.engine.dialect.name)
                with ks.engine.begin() as conn:
                    conn.execute(text(ddl))
                print(f"Created: {ks.table}")

    except (KeystoreError, OSError, ValueError) as e:
        print(str(e), file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
