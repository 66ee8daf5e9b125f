from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker

from storefront.config import settings
from storefront.infrastructure.db_schema import metadata

engine = create_async_engine(settings.DATABASE_URL)
AsyncSessionLocal = async_sessionmaker(engine, expire_on_commit=False)


async def create_tables(db_engine=engine):
    async with db_engine.begin() as conn:
        await conn.run_sync(metadata.create_all)
