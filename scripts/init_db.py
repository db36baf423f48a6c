import asyncio

from oms.config import settings
from oms.database import db, INDEXES

async def init_db():
    print(f"Connecting to {settings.MONGODB_URL}...")
    db.connect()

    for collection in INDEXES:
        print(f"Creating indexes on '{collection}'...")
    await db.ensure_indexes()

    print("Database initialization complete.")
    db.close()

if __name__ == "__main__":
    asyncio.run(init_db())
