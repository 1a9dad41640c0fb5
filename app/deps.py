import logging
import os

from fastapi import HTTPException, UploadFile
from motor.motor_asyncio import AsyncIOMotorDatabase

logger = logging.getLogger(__name__)

# Supported image formats
SUPPORTED_FORMATS = {".png", ".jpg", ".jpeg"}
MAX_FILE_SIZE = int(os.getenv("MAX_IMAGE_SIZE", str(500 * 1024)))  # 500kB

INVALID_INPUTS = "Invalid inputs passed, please check your data."


def get_db() -> AsyncIOMotorDatabase:
    # Import db module to access the current value (not the imported value at module load time)
    import app.db
    db = app.db.db
    if db is None:
        raise HTTPException(status_code=500, detail="Database not connected")
    return db


async def read_image_upload(file: UploadFile) -> bytes:
    """
    Validate an uploaded image and return its content.
    """
    if not file or not file.filename:
        raise HTTPException(status_code=422, detail=INVALID_INPUTS)

    file_ext = os.path.splitext(file.filename)[1].lower()
    if file_ext not in SUPPORTED_FORMATS:
        logger.info("Rejected upload %s: unsupported format", file.filename)
        raise HTTPException(status_code=422, detail="Invalid image file.")

    content = await file.read()
    if not content or len(content) > MAX_FILE_SIZE:
        logger.info("Rejected upload %s: %d bytes", file.filename, len(content))
        raise HTTPException(status_code=422, detail="Invalid image file.")
    return content
