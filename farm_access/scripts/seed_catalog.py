"""
Seed the global permission and role catalog.

    python -m farm_access.scripts.seed_catalog
"""
import asyncio
import logging

from farm_access.core.role_bindings import seed_catalog
from farm_access.db.session import AsyncSessionLocal, engine

logger = logging.getLogger(__name__)


async def main() -> None:
    async with AsyncSessionLocal() as session:
        await seed_catalog(session)
    await engine.dispose()
    logger.info("catalog seeded")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    asyncio.run(main())
