from typing import Dict
import logging

from sqlalchemy import inspect, select, func, text
from sqlalchemy.ext.asyncio import AsyncSession

from rentals.database import Base, engine, init_db
from rentals.database_init import seed_all


logger = logging.getLogger(__name__)


class DatabaseManagementService:
    """Maintenance operations on the database itself."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def test_connection(self) -> bool:
        try:
            await self.db.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error(f"Database connection check failed: {e}")
            return False

    async def get_database_info(self) -> Dict:
        connected = await self.test_connection()

        async with engine.connect() as conn:
            table_names = await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())

        tables = []
        for name in sorted(table_names):
            table = Base.metadata.tables.get(name)
            if table is None:
                continue
            row_count = (await self.db.execute(select(func.count()).select_from(table))).scalar()
            tables.append({"name": name, "row_count": row_count})

        return {
            "dialect": engine.dialect.name,
            "driver": engine.dialect.driver,
            "database": engine.url.database,
            "connected": connected,
            "table_count": len(table_names),
            "tables": tables,
        }

    async def create_tables(self) -> int:
        await init_db()
        return len(Base.metadata.tables)

    async def seed_data(self) -> Dict[str, int]:
        result = await seed_all(self.db)
        logger.info(f"Seed data requested: {result}")
        return result
