#!/usr/bin/env python3
"""
Seed MongoDB with the default plans, mock payments and the built-in model list.

Usage:
    python3 seed_database.py [--clear]
"""

import sys
from datetime import datetime

from database import db, ensure_indexes, COLLECTIONS
from generation.dispatcher import FALLBACK_MODELS
from model_catalog import SCHEMA_VERSION, sanitize_model_id
from payments import seed_mock_payments
from plans import seed_default_plans


def clear_seed_collections():
    """Clear the collections this script seeds"""
    print("Clearing seeded collections...")
    for name in ("subscriptions", "payments", "models"):
        db[COLLECTIONS[name]].delete_many({})
    print("✓ Seeded collections cleared")


def seed_models():
    """Insert the built-in models, active, unless already in the catalog"""
    print("\nSeeding models...")
    added = 0
    for model in FALLBACK_MODELS:
        now = datetime.utcnow()
        result = db.models.update_one(
            {"_id": sanitize_model_id(model["originalId"])},
            {"$setOnInsert": {
                "originalId": model["originalId"],
                "name": model["name"],
                "description": f"Model: {model['name']}",
                "provider": model["provider"],
                "type": model["type"],
                "status": "active",
                "source": "seed",
                "schemaVersion": SCHEMA_VERSION,
                "createdAt": now,
                "updatedAt": now,
            }},
            upsert=True,
        )
        if result.upserted_id is not None:
            added += 1
    print(f"✓ Added {added} models ({len(FALLBACK_MODELS) - added} already present)")


def main():
    if "--clear" in sys.argv:
        clear_seed_collections()

    ensure_indexes(db)

    print("\nSeeding plans...")
    print(f"✓ Added {seed_default_plans(db)} plans")

    print("\nSeeding payments...")
    print(f"✓ Added {seed_mock_payments(db)} mock payments")

    seed_models()

    print("\n✓ Database seeded")


if __name__ == "__main__":
    main()
