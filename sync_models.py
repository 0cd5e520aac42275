#!/usr/bin/env python3
"""
Sync a provider's models into the catalog.

New models are added inactive; existing models keep their status.

Usage:
    python3 sync_models.py <provider> [--live]
    python3 sync_models.py all
"""

import asyncio
import sys

from database import db
from errors import ConfigurationMissing, ProviderError
from generation.providers import ADAPTERS, get_adapter
from generation.sources import MongoCatalogSource, ProviderKeyCache
from model_catalog import sync_models


async def sync_provider(provider: str, live: bool = False):
    adapter = get_adapter(provider)
    api_key = await ProviderKeyCache(MongoCatalogSource(db)).get(provider)
    candidates = await adapter.fetch_models(api_key, live=live)
    return sync_models(db, candidates, provider)


def main():
    args = [a for a in sys.argv[1:] if not a.startswith("--")]
    live = "--live" in sys.argv

    if not args:
        print("Usage: python3 sync_models.py <provider> [--live]")
        print(f"Available providers: {', '.join(ADAPTERS.keys())}, all")
        sys.exit(1)

    provider = args[0].lower()
    providers = list(ADAPTERS.keys()) if provider == "all" else [provider]
    unknown = [p for p in providers if p not in ADAPTERS]
    if unknown:
        print(f"Error: Unknown provider '{unknown[0]}'")
        print(f"Available providers: {', '.join(ADAPTERS.keys())}")
        sys.exit(1)

    exit_code = 0
    for name in providers:
        print(f"\n=== Syncing {name} ===")
        try:
            report = asyncio.run(sync_provider(name, live=live))
        except (ConfigurationMissing, ProviderError) as e:
            print(f"✗ {name}: {e}")
            exit_code = 1
            continue
        print(f"✓ {report.synced} synced ({len(report.created)} new, {len(report.updated)} updated)")
        for collision in report.collisions:
            print(f"  ⚠ Collision: {collision['originalId']} maps to {collision['id']} "
                  f"(already used by {collision['existingOriginalId']})")
        if report.failed:
            print(f"  ✗ {len(report.failed)} failed writes")
            exit_code = 1

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
