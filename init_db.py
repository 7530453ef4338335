# init_db.py
import asyncio

from careslot.db.sql import engine, init_db


async def init_models():
    # Drops every table first: local development only
    await init_db(engine, drop=True)
    await engine.dispose()

    print("Database schema recreated successfully!")


if __name__ == "__main__":
    asyncio.run(init_models())
