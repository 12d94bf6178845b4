"""Ordering database management CLI.

Creates and drops the SQL order store schema and seeds the product catalogue.
The database comes from ORDERING_DATABASE_URI unless --database-uri is given.

Usage:
    python src/manage.py setup-db                  # Create all tables
    python src/manage.py drop-db                   # Drop all tables
    python src/manage.py seed products.json        # Register products from a JSON list
"""

import argparse
import json
import sys
from pathlib import Path


def _sql_store(database_uri=None):
    from ordering.config import settings
    from ordering.persistence.sql import SqlOrderStore

    uri = database_uri or settings.database_uri
    if uri.startswith("memory://"):
        print("The in-memory store has no schema; set ORDERING_DATABASE_URI to a SQL database.")
        sys.exit(1)
    return SqlOrderStore.from_uri(uri, lock_timeout=settings.lock_timeout_seconds)


def setup_database(database_uri=None):
    """Create the order store schema."""
    store = _sql_store(database_uri)
    print(f"Creating ordering schema on {store.engine.url.render_as_string(hide_password=True)}...")
    store.create_schema()
    store.dispose()
    print("Done.")


def drop_database(database_uri=None):
    """Drop the order store schema."""
    store = _sql_store(database_uri)
    print(f"Dropping ordering schema on {store.engine.url.render_as_string(hide_password=True)}...")
    store.drop_schema()
    store.dispose()
    print("Done.")


def seed_products(path, database_uri=None):
    """Register every product listed in a JSON file.

    The file holds a list of objects with ``name``, ``price``, and optionally
    ``stock``, ``status`` and ``id``.
    """
    from ordering.domain import ordering
    from ordering.inventory.catalogue import Catalogue

    entries = json.loads(Path(path).read_text(encoding="utf-8"))
    store = _sql_store(database_uri)

    ordering.init()
    with ordering.domain_context():
        catalogue = Catalogue(store)
        for entry in entries:
            product_id = catalogue.register_product(
                name=entry["name"],
                price=entry.get("price"),
                stock=entry.get("stock", 0),
                status=entry.get("status"),
                product_id=entry.get("id"),
            )
            print(f"  {product_id}: {entry['name']}")

    store.dispose()
    print(f"Seeded {len(entries)} products.")


def main():
    parser = argparse.ArgumentParser(description="Ordering database management")
    parser.add_argument("--database-uri", help="SQLAlchemy database URL (default: ORDERING_DATABASE_URI)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")

    seed_parser = subparsers.add_parser("seed", help="Register products from a JSON file")
    seed_parser.add_argument("file", help="Path to a JSON list of products")

    args = parser.parse_args()

    if args.command == "setup-db":
        setup_database(args.database_uri)
    elif args.command == "drop-db":
        drop_database(args.database_uri)
    elif args.command == "seed":
        seed_products(args.file, args.database_uri)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
