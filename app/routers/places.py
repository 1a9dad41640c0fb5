import logging
from typing import List, Optional

from bson import ObjectId
from fastapi import APIRouter, Body, Depends, File, Form, HTTPException, UploadFile, status
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import ValidationError
from pymongo import ReturnDocument
from pymongo.errors import PyMongoError

from app.db import transaction
from app.deps import INVALID_INPUTS, get_db, read_image_upload
from app.models import (
    CommentCreate,
    CommentDelete,
    LikeResult,
    PlaceCreate,
    PlaceUpdate,
    new_comment_document,
    new_place_document,
    serialize_doc,
    to_object_id,
)
from app.security.auth import get_current_user_id
from app.services.geocoding_service import GeocodingService, get_geocoding_service
from app.services.s3_service import S3Service, get_s3_service

logger = logging.getLogger(__name__)

router = APIRouter()

PLACE_NOT_FOUND = "Could not find a place for the provided ID"


def _caller_oid(user_id: str) -> ObjectId:
    oid = to_object_id(user_id)
    if oid is None:
        raise HTTPException(status_code=401, detail="Authentication failed!")
    return oid


def _comment_field(payload) -> Optional[str]:
    if payload is None or not isinstance(payload.comment, str):
        return None
    return payload.comment


@router.get("", summary="List all places")
async def get_all_places(database: AsyncIOMotorDatabase = Depends(get_db)):
    try:
        places = [serialize_doc(doc) async for doc in database.places.find({})]
    except PyMongoError as e:
        logger.error(f"Fetching places failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Fetching places failed, please try again later.")
    return {"places": places}


@router.get("/user/{uid}", summary="List places created by a user")
async def get_places_by_user_id(uid: str, database: AsyncIOMotorDatabase = Depends(get_db)):
    user_oid = to_object_id(uid)
    not_found = HTTPException(status_code=404, detail="Could not find places for the provided user ID")
    if user_oid is None:
        raise not_found

    try:
        user = await database.users.find_one({"_id": user_oid}, projection={"places": 1})
        if not user:
            raise not_found
        place_ids: List[ObjectId] = user.get("places", [])
        docs = await database.places.find({"_id": {"$in": place_ids}}).to_list(length=None)
    except PyMongoError as e:
        logger.error(f"Fetching places for user {uid} failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Could not fetch places for the provided user ID")

    # keep the order of user.places; dangling references are skipped
    by_id = {doc["_id"]: doc for doc in docs}
    places = [serialize_doc(by_id[pid]) for pid in place_ids if pid in by_id]
    return {"places": places}


@router.get("/{pid}", summary="Get a place")
async def get_place_by_id(pid: str, database: AsyncIOMotorDatabase = Depends(get_db)):
    oid = to_object_id(pid)
    if oid is None:
        raise HTTPException(status_code=404, detail=PLACE_NOT_FOUND)
    try:
        place = await database.places.find_one({"_id": oid})
    except PyMongoError as e:
        logger.error(f"Fetching place {pid} failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Could not fetch place for the provided ID")
    if not place:
        raise HTTPException(status_code=404, detail=PLACE_NOT_FOUND)
    return {"place": serialize_doc(place)}


@router.post("", status_code=status.HTTP_201_CREATED, summary="Create a place")
async def create_place(
    title: str = Form(...),
    description: str = Form(...),
    address: str = Form(...),
    image: UploadFile = File(...),
    user_id: str = Depends(get_current_user_id),
    database: AsyncIOMotorDatabase = Depends(get_db),
    geocoder: GeocodingService = Depends(get_geocoding_service),
    s3: S3Service = Depends(get_s3_service),
):
    try:
        payload = PlaceCreate(title=title, description=description, address=address)
    except ValidationError:
        raise HTTPException(status_code=422, detail=INVALID_INPUTS)
    content = await read_image_upload(image)

    creator_oid = _caller_oid(user_id)
    try:
        user = await database.users.find_one({"_id": creator_oid})
    except PyMongoError as e:
        logger.error(f"Loading creator {user_id} failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Creating place failed, please try again")
    if not user:
        raise HTTPException(status_code=404, detail="Could not find user for provided id")

    location = await geocoder.get_coords_for_address(payload.address)

    upload = await s3.upload_image(
        file_content=content,
        filename=image.filename,
        content_type=image.content_type or "image/jpeg",
        prefix="places",
    )

    doc = new_place_document(payload, upload["s3_url"], location, user)
    doc["_id"] = ObjectId()
    try:
        async with transaction(database) as session:
            await database.places.insert_one(doc, session=session)
            await database.users.update_one(
                {"_id": creator_oid},
                {"$push": {"places": doc["_id"]}},
                session=session,
            )
    except PyMongoError as e:
        logger.error(f"Creating place failed: {e}", exc_info=True)
        await s3.delete_image_by_url(upload["s3_url"])
        raise HTTPException(status_code=500, detail="Creating place failed, please try again")

    logger.info(f"Place {doc['_id']} created by user {user_id}")
    return {"place": serialize_doc(doc)}


@router.patch("/{pid}", summary="Update a place's title and description")
async def update_place(
    pid: str,
    payload: PlaceUpdate,
    user_id: str = Depends(get_current_user_id),
    database: AsyncIOMotorDatabase = Depends(get_db),
):
    oid = to_object_id(pid)
    if oid is None:
        raise HTTPException(status_code=404, detail=PLACE_NOT_FOUND)

    try:
        place = await database.places.find_one({"_id": oid}, projection={"creator": 1})
    except PyMongoError as e:
        logger.error(f"Loading place {pid} failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Could not update place with the provided ID")
    if not place:
        raise HTTPException(status_code=404, detail=PLACE_NOT_FOUND)

    if str(place["creator"]) != user_id:
        raise HTTPException(status_code=401, detail="You are not allowed to edit this place")

    try:
        updated = await database.places.find_one_and_update(
            {"_id": oid},
            {"$set": {"title": payload.title, "description": payload.description}},
            return_document=ReturnDocument.AFTER,
        )
    except PyMongoError as e:
        logger.error(f"Updating place {pid} failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Could not update place with the provided ID")
    if not updated:
        raise HTTPException(status_code=404, detail=PLACE_NOT_FOUND)

    logger.info(f"Place {pid} updated by user {user_id}")
    return {"place": serialize_doc(updated)}


@router.delete("/{pid}", summary="Delete a place")
async def delete_place(
    pid: str,
    user_id: str = Depends(get_current_user_id),
    database: AsyncIOMotorDatabase = Depends(get_db),
):
    not_found = HTTPException(status_code=404, detail="Could not find a place with the provided ID")
    oid = to_object_id(pid)
    if oid is None:
        raise not_found

    try:
        place = await database.places.find_one({"_id": oid}, projection={"creator": 1, "image": 1})
    except PyMongoError as e:
        logger.error(f"Loading place {pid} failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Could not delete place with the provided ID")
    if not place:
        raise not_found

    if str(place["creator"]) != user_id:
        raise HTTPException(status_code=401, detail="You are not allowed to delete this place")

    try:
        async with transaction(database) as session:
            await database.places.delete_one({"_id": oid}, session=session)
            await database.users.update_one(
                {"_id": place["creator"]},
                {"$pull": {"places": oid}},
                session=session,
            )
    except PyMongoError as e:
        logger.error(f"Deleting place {pid} failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Could not delete place with the provided ID")

    # image removal never fails the request
    if place.get("image"):
        try:
            s3 = get_s3_service()
        except HTTPException:
            logger.warning(f"Image storage unavailable, leaving {place['image']} in place")
        else:
            await s3.delete_image_by_url(place["image"])

    logger.info(f"Place {pid} deleted by user {user_id}")
    return {"message": "Deleted place"}


@router.post(
    "/{pid}/like",
    status_code=status.HTTP_201_CREATED,
    response_model=LikeResult,
    summary="Toggle the caller's like on a place",
)
async def handle_like_add(
    pid: str,
    user_id: str = Depends(get_current_user_id),
    database: AsyncIOMotorDatabase = Depends(get_db),
):
    oid = to_object_id(pid)
    if oid is None:
        raise HTTPException(status_code=404, detail=PLACE_NOT_FOUND)
    user_oid = _caller_oid(user_id)

    try:
        # matches only when the caller already likes the place
        place = await database.places.find_one_and_update(
            {"_id": oid, "likes": user_oid},
            {"$pull": {"likes": user_oid}},
            projection={"likes": 1},
            return_document=ReturnDocument.AFTER,
        )
        is_liked = False
        if place is None:
            place = await database.places.find_one_and_update(
                {"_id": oid},
                {"$addToSet": {"likes": user_oid}},
                projection={"likes": 1},
                return_document=ReturnDocument.AFTER,
            )
            is_liked = True
    except PyMongoError as e:
        logger.error(f"Toggling like on place {pid} failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Liking place failed, please try again")

    if place is None:
        raise HTTPException(status_code=404, detail=PLACE_NOT_FOUND)

    return LikeResult(isLiked=is_liked, likesNumber=len(place.get("likes", [])), user=user_id)


@router.post("/{pid}/comments", status_code=status.HTTP_201_CREATED, summary="Comment on a place")
async def create_comment(
    pid: str,
    payload: Optional[CommentCreate] = Body(None),
    user_id: str = Depends(get_current_user_id),
    database: AsyncIOMotorDatabase = Depends(get_db),
):
    text = (_comment_field(payload) or "").strip()
    oid = to_object_id(pid)
    if not text:
        raise HTTPException(status_code=400, detail="Comment is missing in request body")
    if oid is None:
        raise HTTPException(status_code=404, detail=PLACE_NOT_FOUND)
    user_oid = _caller_oid(user_id)

    try:
        author = await database.users.find_one({"_id": user_oid}, projection={"name": 1})
        if not author:
            raise HTTPException(status_code=404, detail="Could not find user for provided id")
        place = await database.places.find_one_and_update(
            {"_id": oid},
            {"$push": {"comments": new_comment_document(author, text)}},
            return_document=ReturnDocument.AFTER,
        )
    except PyMongoError as e:
        logger.error(f"Creating comment on place {pid} failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Comment creation failed, please try again")
    if place is None:
        raise HTTPException(status_code=404, detail=PLACE_NOT_FOUND)

    logger.info(f"User {user_id} commented on place {pid}")
    return {"place": serialize_doc(place)}


@router.delete("/{pid}/comments", summary="Remove a comment from a place")
async def delete_comment(
    pid: str,
    payload: Optional[CommentDelete] = Body(None),
    user_id: str = Depends(get_current_user_id),
    database: AsyncIOMotorDatabase = Depends(get_db),
):
    comment_id = _comment_field(payload)
    oid = to_object_id(pid)
    comment_oid = to_object_id(comment_id)
    if not comment_id:
        raise HTTPException(status_code=400, detail="Comment removal failed")
    if oid is None:
        raise HTTPException(status_code=404, detail=PLACE_NOT_FOUND)
    if comment_oid is None:
        raise HTTPException(status_code=404, detail="Could not find a comment for the provided ID")

    try:
        place = await database.places.find_one({"_id": oid}, projection={"creator": 1, "comments": 1})
    except PyMongoError as e:
        logger.error(f"Loading place {pid} failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Comment removal failed")
    if not place:
        raise HTTPException(status_code=404, detail=PLACE_NOT_FOUND)

    comment = next((c for c in place.get("comments", []) if c.get("_id") == comment_oid), None)
    if comment is None:
        raise HTTPException(status_code=404, detail="Could not find a comment for the provided ID")
    if user_id not in (str(comment.get("userId")), str(place.get("creator"))):
        raise HTTPException(status_code=401, detail="You are not allowed to delete this comment")

    try:
        updated = await database.places.find_one_and_update(
            {"_id": oid},
            {"$pull": {"comments": {"_id": comment_oid}}},
            return_document=ReturnDocument.AFTER,
        )
    except PyMongoError as e:
        logger.error(f"Removing comment {comment_id} from place {pid} failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Comment removal failed")
    if updated is None:
        raise HTTPException(status_code=404, detail=PLACE_NOT_FOUND)

    logger.info(f"Comment {comment_id} removed from place {pid} by user {user_id}")
    return {"place": serialize_doc(updated)}
