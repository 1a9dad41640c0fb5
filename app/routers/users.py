import logging

from bson import ObjectId
from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import ValidationError
from pymongo.errors import DuplicateKeyError, PyMongoError

from app.deps import INVALID_INPUTS, get_db, read_image_upload
from app.models import AuthResponse, LoginRequest, UserCreate, serialize_user
from app.security.auth import create_access_token, hash_password, verify_password
from app.services.s3_service import S3Service, get_s3_service

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", summary="List users")
async def get_users(database: AsyncIOMotorDatabase = Depends(get_db)):
    try:
        users = [serialize_user(doc) async for doc in database.users.find({}, projection={"password": 0})]
    except PyMongoError as e:
        logger.error(f"Fetching users failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Fetching users failed, please try again later.")
    return {"users": users}


@router.post("/signup", response_model=AuthResponse, status_code=status.HTTP_201_CREATED, summary="Sign up")
async def signup(
    name: str = Form(...),
    email: str = Form(...),
    password: str = Form(...),
    image: UploadFile = File(...),
    database: AsyncIOMotorDatabase = Depends(get_db),
    s3: S3Service = Depends(get_s3_service),
):
    try:
        data = UserCreate(name=name, email=email, password=password)
    except ValidationError:
        raise HTTPException(status_code=422, detail=INVALID_INPUTS)
    content = await read_image_upload(image)

    user_exists = HTTPException(status_code=422, detail="User exists already, please login instead.")
    try:
        exists = await database.users.find_one({"email": data.email}, projection={"_id": 1})
    except PyMongoError as e:
        logger.error(f"Signup lookup failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Signing up failed, please try again later.")
    if exists:
        raise user_exists

    upload = await s3.upload_image(
        file_content=content,
        filename=image.filename,
        content_type=image.content_type or "image/jpeg",
        prefix="users",
    )

    doc = {
        "_id": ObjectId(),
        "name": data.name,
        "email": data.email,
        "password": hash_password(data.password),
        "image": upload["s3_url"],
        "places": [],
    }
    try:
        await database.users.insert_one(doc)
    except DuplicateKeyError:
        await s3.delete_image_by_url(upload["s3_url"])
        raise user_exists
    except PyMongoError as e:
        logger.error(f"Signup insert failed: {e}", exc_info=True)
        await s3.delete_image_by_url(upload["s3_url"])
        raise HTTPException(status_code=500, detail="Signing up failed, please try again later.")

    user_id = str(doc["_id"])
    logger.info(f"User {user_id} signed up")
    return AuthResponse(userId=user_id, email=data.email, token=create_access_token(user_id, data.email))


@router.post("/login", response_model=AuthResponse, summary="Log in")
async def login(form: LoginRequest, database: AsyncIOMotorDatabase = Depends(get_db)):
    invalid = HTTPException(status_code=403, detail="Invalid credentials, could not log you in.")
    email = form.email.strip().lower()
    if not email or not form.password:
        raise invalid

    try:
        user = await database.users.find_one({"email": email})
    except PyMongoError as e:
        logger.error(f"Login lookup failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Logging in failed, please try again later.")

    if not user or not verify_password(form.password, user.get("password", "")):
        logger.info("Failed login attempt")
        raise invalid

    user_id = str(user["_id"])
    return AuthResponse(userId=user_id, email=user["email"], token=create_access_token(user_id, user["email"]))
