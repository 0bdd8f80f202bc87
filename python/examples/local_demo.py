import os
import sys
import tempfile
from pathlib import Path

# Ensure `python/` directory is on sys.path when running as a script.
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from sqlalchemy import text

from pgkeystore import KeyExistsError, SQLKeystore, create_table_sql, generate_key, key_equals


def main() -> None:
    """Local demo against a throwaway SQLite database (no PostgreSQL needed)."""
    with tempfile.TemporaryDirectory() as d:
        dsn = "sqlite:///" + os.path.join(d, "demo.db")

        with SQLKeystore(dsn, {"table": "demo_keys"}) as ks:
            # The keystore never creates its table; do it through the exposed engine.
            with ks.engine.begin() as conn:
                conn.execute(text(create_table_sql(ks.table, "sqlite")))

            identity = generate_key("ed25519")
            ks.put("identity", identity)
            ks.put("signer", generate_key("secp256k1"))
            print("keys:", sorted(ks.list()))

            try:
                ks.put("identity", generate_key("ed25519"))
            except KeyExistsError as e:
                print("refused overwrite:", e)

            print("identity round-trip ok:", key_equals(ks.get("identity"), identity))

            ks.delete("signer")
            print("has signer after delete:", ks.has("signer"))


if __name__ == "__main__":
    main()
