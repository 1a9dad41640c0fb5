from contextlib import asynccontextmanager
from typing import Optional
import logging
import os
from pathlib import Path
import certifi
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from dotenv import load_dotenv

# Get the project root directory (where .env should be)
project_root = Path(__file__).parent.parent
env_path = project_root / ".env"

# Load .env file from project root
load_dotenv(dotenv_path=env_path)

MONGO_URI = os.getenv("MONGO_URI")
DB_NAME = os.getenv("DB_NAME", "places")

logger = logging.getLogger(__name__)

# 전역 클라이언트와 DB 핸들
_client: Optional[AsyncIOMotorClient] = None
db: Optional[AsyncIOMotorDatabase] = None


async def connect(*args, **kwargs):
    """
    Connect to MongoDB and keep the client and database handle in module globals.
    """
    global _client, db
    if not MONGO_URI:
        logger.error("MONGO_URI is not set (looked for .env at %s, exists=%s)", env_path, env_path.exists())
        raise ValueError(
            "MONGO_URI is not set. Please check:\n"
            "   1. Variable name is MONGO_URI (all uppercase)\n"
            "   2. No spaces around the = sign\n"
            "   3. .env file is in the project root"
        )

    try:
        if MONGO_URI.startswith("mongodb+srv://") or "tls=true" in MONGO_URI:
            _client = AsyncIOMotorClient(MONGO_URI, tlsCAFile=certifi.where())
        else:
            _client = AsyncIOMotorClient(MONGO_URI)
        db = _client[DB_NAME]

        # 연결 테스트
        await db.command("ping")
        logger.info("Connected to MongoDB database '%s'", DB_NAME)
    except Exception as e:
        logger.error("MongoDB connection failed: %s", e)
        _client = None
        db = None


async def close():
    """Close the MongoDB connection."""
    global _client, db
    if _client is not None:
        _client.close()
        _client = None
        db = None
        logger.info("MongoDB connection closed")


@asynccontextmanager
async def transaction(database: AsyncIOMotorDatabase):
    """
    Run the enclosed writes in one MongoDB transaction.

    Yields the session; every write inside the block must pass ``session=``.
    Commits when the block exits normally, aborts when it raises.
    Transactions need a replica set or a sharded cluster (Atlas is fine).
    """
    async with await database.client.start_session() as session:
        async with session.start_transaction():
            yield session
