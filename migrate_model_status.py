#!/usr/bin/env python3
"""
Migration: Replace the legacy `isActive` flag on catalog models with `status`.

1. Derives `status` from `isActive` where `status` is missing
2. Removes `isActive` and stamps schemaVersion 2
3. Reports results

Entries already at schemaVersion 2 are skipped, so running this twice is safe.

Usage:
    python migrate_model_status.py
"""

from database import db
from model_catalog import migrate_model_status


def main():
    print("=== Migrating model status ===")
    total = db.models.count_documents({})
    print(f"Found {total} models")

    report = migrate_model_status(db)

    print("\n=== Results ===")
    print(f"  Migrated: {len(report.migrated)}")
    print(f"  Already current: {report.skipped}")
    print(f"  Errors: {len(report.failed)}")
    for failure in report.failed:
        print(f"    {failure['id']}: {failure['error']}")

    remaining = db.models.count_documents({"isActive": {"$exists": True}})
    if remaining:
        print(f"\n⚠ {remaining} models still carry isActive")
    else:
        print("\n✓ No models carry isActive")


if __name__ == "__main__":
    main()
