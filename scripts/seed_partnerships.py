#!/usr/bin/env python3
"""Seed the database with sample institutional partnerships.

Usage:
    python -m scripts.seed_partnerships
    # or from project root:
    python scripts/seed_partnerships.py
"""

import asyncio
import sys
from pathlib import Path

# Ensure project root is on path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "src"))

from usage_governor.admission.features import Feature
from usage_governor.common.config import get_settings
from usage_governor.common.database import DatabaseManager
from usage_governor.common.exceptions import ProvisioningError
from usage_governor.usage.models import UNLIMITED
from usage_governor.usage.service import UsageService
from usage_governor.usage.store import UsageRecordStore

PARTNERSHIP_SEEDS = [
    {
        "name": "Marine Conservation Institute",
        "limits": {
            Feature.AI_SEARCH: UNLIMITED,
            Feature.AI_ANALYSIS: 200,
            Feature.AI_GRANT_WRITING: 50,
            Feature.AI_SYNTHESIS: 100,
        },
    },
    {
        "name": "University Field Station Network",
        "limits": {
            Feature.AI_SEARCH: 1000,
            Feature.AI_ANALYSIS: 100,
            Feature.AI_GRANT_WRITING: 20,
            Feature.AI_SYNTHESIS: 50,
        },
    },
    {
        "name": "Wildlife Trust Pilot",
        "limits": {
            Feature.AI_SEARCH: 100,
            Feature.AI_ANALYSIS: 10,
            Feature.AI_GRANT_WRITING: 0,
            Feature.AI_SYNTHESIS: 10,
        },
    },
]


async def seed_partnerships() -> None:
    settings = get_settings()
    db = DatabaseManager(settings)
    await db.init()
    await db.create_all()

    svc = UsageService(settings, UsageRecordStore())

    for seed in PARTNERSHIP_SEEDS:
        try:
            async with db.get_session() as session:
                partnership = await svc.create_partnership(session, seed["name"], seed["limits"])
            print(f"  [created] {seed['name']} ({partnership.id})")
        except ProvisioningError:
            print(f"  [skip] {seed['name']} already exists")

    await db.close()
    print(f"\nDone. {len(PARTNERSHIP_SEEDS)} partnerships processed.")


if __name__ == "__main__":
    asyncio.run(seed_partnerships())
