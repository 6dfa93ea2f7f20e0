#!/usr/bin/env python3
"""
Seed a local SQLite store from a JSON export of CRM records.

Usage:
    python scripts/seed_local_store.py --json data/records.json --db data/crm.db
"""

import argparse
from pathlib import Path
import sys

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from crmdedupe.database import LocalStore
from crmdedupe.storage import load_records_file, seed_store, validate_record_entry


def seed(json_path: Path, db_path: Path, dry_run: bool = False) -> bool:
    """
    Load records from JSON into the local store.

    Args:
        json_path: Path to JSON export
        db_path: Path to SQLite database file
        dry_run: If True, only validate and show what would be loaded
    """
    print(f"Loading records from {json_path}...")
    records = load_records_file(json_path)
    print(f"Found {len(records)} records in JSON export")

    if dry_run:
        print("\n[DRY RUN] Would load the following records:")
        for i, entry in enumerate(records[:5], 1):
            problems = validate_record_entry(entry)
            marker = f"invalid: {'; '.join(problems)}" if problems else "ok"
            print(f"  {i}. {entry.get('kind')} {entry.get('id')} ({marker})")
        if len(records) > 5:
            print(f"  ... and {len(records) - 5} more")
        return True

    print(f"\nInitializing store at {db_path}...")
    outcome = seed_store(LocalStore(db_path), records)
    print("\nSeeding complete!")
    print(f"   Loaded: {outcome['loaded']}")
    print(f"   Errors: {len(outcome['errors'])}")
    for record_id, errors in outcome["errors"].items():
        print(f"   - {record_id}: {'; '.join(errors)}")
    return not outcome["errors"]


def main():
    parser = argparse.ArgumentParser(description="Seed a local CRM store from JSON")
    parser.add_argument("--json", type=Path, default=Path("data/records.json"),
                       help="Path to JSON export")
    parser.add_argument("--db", type=Path, default=Path("data/crm.db"),
                       help="Path to SQLite database file")
    parser.add_argument("--dry-run", action="store_true",
                       help="Show what would be loaded without writing")

    args = parser.parse_args()

    if not args.json.exists():
        print(f"JSON file not found: {args.json}")
        sys.exit(1)

    ok = seed(args.json, args.db, dry_run=args.dry_run)
    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    main()
