# ============================================================================
# Backfill Content Slugs
# ============================================================================
"""
Generate slugs for hierarchy nodes that do not have one yet (rows created
before slugs existed, or imported directly into the database).

Usage:
    python scripts/backfill_slugs.py            # fill missing slugs
    python scripts/backfill_slugs.py --dry-run  # only report what would change
"""

import asyncio
import argparse
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import select, or_

import portal.models  # noqa: F401
from portal.core.database import async_session_maker, engine
from portal.services.hierarchy import LEVELS, MODELS, parent_field
from portal.utils.text import create_slug

async def backfill(dry_run: bool = False):
    async with async_session_maker() as db:
        for level in LEVELS:
            model = MODELS[level]
            field = parent_field(level)

            result = await db.execute(select(model).where(or_(model.slug.is_(None), model.slug == "")))
            nodes = result.scalars().all()
            if not nodes:
                print(f"{level}: nothing to do")
                continue

            # Slugs already taken, per parent
            taken_result = await db.execute(select(model).where(model.slug.is_not(None), model.slug != ""))
            taken = {}
            for node in taken_result.scalars().all():
                taken.setdefault(getattr(node, field) if field else None, set()).add(node.slug)

            for node in nodes:
                scope = taken.setdefault(getattr(node, field) if field else None, set())
                base = create_slug(node.name) or level
                slug, counter = base, 1
                while slug in scope:
                    slug = f"{base}-{counter}"
                    counter += 1
                scope.add(slug)
                print(f"{level}: {node.name!r} -> {slug}")
                if not dry_run:
                    node.slug = slug

            if not dry_run:
                await db.commit()
            print(f"{level}: {len(nodes)} slugs {'would be ' if dry_run else ''}generated")

    await engine.dispose()

def main():
    parser = argparse.ArgumentParser(description="Backfill missing content slugs")
    parser.add_argument("--dry-run", action="store_true", help="Report changes without saving")

    args = parser.parse_args()
    asyncio.run(backfill(args.dry_run))

if __name__ == "__main__":
    main()
