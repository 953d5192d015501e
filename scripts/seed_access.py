"""
Seed script to write the shipped access configuration.

Run this script after database initialization to store:
- The default permission matrix (schoolPermissions)
- The default visibility of every section registry

Keys that already hold a value are left alone unless --force is given.

Usage:
    uv run python -m scripts.seed_access [--force]
"""
import argparse
import asyncio

from app.core.database.engine import AsyncSessionLocal, init_db
from app.features.access.storage import SqlKeyValueStore
from app.features.access.store import ConfigurationSnapshot
from app.utils import get_logger


log = get_logger(__name__)


async def seed_access(force: bool = False) -> None:
    """Write default configuration blobs."""
    log.info("Initializing database...")
    await init_db()

    backend = SqlKeyValueStore(AsyncSessionLocal)
    written = 0
    for key, payload in ConfigurationSnapshot.defaults().blobs().items():
        if not force and await backend.load(key) is not None:
            log.info(f"Key {key!r} already stored, skipping")
            continue
        await backend.save(key, payload)
        written += 1
        log.info(f"Stored defaults for {key!r}")

    log.info(f"Seeding complete: {written} keys written")


def main():
    parser = argparse.ArgumentParser(description="Seed the default access configuration")
    parser.add_argument("--force", action="store_true", help="overwrite keys that are already stored")
    args = parser.parse_args()
    asyncio.run(seed_access(force=args.force))


if __name__ == "__main__":
    main()
