#!/usr/bin/env python3
"""Validate the catalog seed files and print a summary; exits 1 on integrity errors."""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from backend.app.discovery.catalog import (  # noqa: E402
    CatalogIntegrityError,
    JsonCatalogRepository,
)
from backend.app.settings import settings  # noqa: E402


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "directory",
        nargs="?",
        type=Path,
        default=settings.catalog_dir,
        help="catalog directory (defaults to CATALOG_DIR or the bundled seed)",
    )
    args = parser.parse_args(argv)
    try:
        catalog = JsonCatalogRepository(args.directory)
    except CatalogIntegrityError as exc:
        print(f"[check_catalog] {exc}", file=sys.stderr)
        return 1

    known_intents = {intent.id for intent in catalog.lookup_intents()}
    orphans = sorted(
        {row.intent_id for row in catalog.lookup_keywords()} - known_intents
    )
    print(
        f"[check_catalog] {args.directory}: "
        f"{len(catalog.lookup_states())} states, "
        f"{len(catalog.lookup_cities())} cities, "
        f"{len(catalog.lookup_establishments())} establishments, "
        f"{len(catalog.lookup_intents())} intents, "
        f"{len(catalog.lookup_keywords())} keywords"
    )
    if orphans:
        # scoring skips them; worth knowing about all the same
        print(f"[check_catalog] keywords reference unknown intents: {orphans}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
