from __future__ import annotations

import asyncio

from equipcare.core.logging import configure_logging
from equipcare.domain.models import Base
from equipcare.persistence.db import engine


async def _main() -> None:
    # Local/dev bootstrap only; production schemas come from the alembic revisions.
    configure_logging()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(_main())
