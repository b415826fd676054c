from __future__ import annotations

import asyncio

from veronika.config import get_settings
from veronika.db.session import create_engine, create_sessionmaker, create_tables
from veronika.services.seeding import seed_defaults
from veronika.utils.logging import configure_logging


async def main() -> None:
    settings = get_settings()
    configure_logging(settings.log_level)
    engine = create_engine(settings)
    sessionmaker = create_sessionmaker(engine)

    if settings.auto_create_tables:
        await create_tables(engine)

    async with sessionmaker() as session:
        await seed_defaults(session, settings)
        await session.commit()

    await engine.dispose()


if __name__ == '__main__':
    asyncio.run(main())
