"""Seed script for deduction bracket tables.

Run with:
    python scripts/seed_deduction_rules.py [tables.json]

Without an argument the bundled master tables are loaded. Each kind's
table is replaced in its own transaction.
"""

from __future__ import annotations

import sys
from pathlib import Path

from payrecon.database import init_db
from payrecon.schemas import BracketTableSet, load_default_tables
from payrecon.stores.sql import SqlDeductionRuleCatalog


def load_tables(path: str | None) -> BracketTableSet:
    if path is None:
        return load_default_tables()
    return BracketTableSet.model_validate_json(Path(path).read_text(encoding="utf-8"))


def main(argv: list[str]) -> None:
    """Run seed script."""
    print("Seeding deduction tables...")

    _, factory = init_db(create_tables=True)
    catalog = SqlDeductionRuleCatalog(factory)
    tables = load_tables(argv[1] if len(argv) > 1 else None)

    for table in tables.tables:
        written = catalog.replace_table(table.kind, table.to_rules(), table.pay_period_id)
        scope = table.pay_period_id or "master"
        print(f"Wrote {written} {table.kind.value} brackets ({scope})")

    print("\nDone! Deduction tables seeded successfully.")


if __name__ == "__main__":
    main(sys.argv)
