# setup_main_db.py
import asyncio

from driftwatch.core.config import settings
from driftwatch.core.database import build_engine, create_db_and_tables


async def create_history_tables():
    print(f"Creating audit history tables in: {settings.ASYNC_DATABASE_URL}")

    engine = build_engine(settings.DATABASE_URL)
    try:
        await create_db_and_tables(engine)
    finally:
        await engine.dispose()

    print("Audit history tables created successfully!")


if __name__ == "__main__":
    asyncio.run(create_history_tables())
