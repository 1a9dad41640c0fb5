import logging

from fastapi import APIRouter
from pymongo.errors import PyMongoError

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", summary="Service health")
async def health():
    import app.db
    database = app.db.db
    if database is None:
        return {"status": "ok", "database": "disconnected"}
    try:
        await database.command("ping")
    except PyMongoError as e:
        logger.warning(f"Health check ping failed: {e}")
        return {"status": "ok", "database": "disconnected"}
    return {"status": "ok", "database": "connected"}
