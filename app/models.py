from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from bson import ObjectId
from pydantic import BaseModel, EmailStr, Field, field_validator


class Location(BaseModel):
    """Geocoded coordinates of a place address."""

    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class PlaceCreate(BaseModel):
    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=5)
    address: str = Field(..., min_length=1)

    @field_validator("title", "address")
    @classmethod
    def not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be empty")
        return value


class PlaceUpdate(BaseModel):
    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=5)

    @field_validator("title")
    @classmethod
    def not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be empty")
        return value


class CommentCreate(BaseModel):
    # anything but a string counts as a missing comment
    comment: Any = None


class CommentDelete(BaseModel):
    # id of the embedded comment to remove
    comment: Any = None


class LikeResult(BaseModel):
    isLiked: bool
    likesNumber: int
    user: str


class UserCreate(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=6)

    @field_validator("name")
    @classmethod
    def not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be empty")
        return value

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.lower()


class LoginRequest(BaseModel):
    email: str
    password: str


class AuthResponse(BaseModel):
    userId: str
    email: str
    token: str


def _stringify(val):
    """Convert MongoDB types to JSON-serializable types."""
    if isinstance(val, ObjectId):
        return str(val)
    elif isinstance(val, datetime):
        return val.isoformat()
    return val


def serialize_doc(doc: Any) -> Any:
    """
    Convert Mongo ObjectIds and other types to JSON-serializable formats.

    Every (sub)document carrying an ``_id`` also gets an ``id`` string,
    so clients can use either key.
    """
    if isinstance(doc, list):
        return [serialize_doc(item) for item in doc]
    if not isinstance(doc, dict):
        return _stringify(doc)

    # Create a copy to avoid mutating the original
    result = {}
    for key, value in doc.items():
        if isinstance(value, (dict, list)):
            result[key] = serialize_doc(value)
        else:
            result[key] = _stringify(value)
    if "_id" in result and "id" not in result:
        result["id"] = result["_id"]
    return result


def serialize_user(doc: dict) -> dict:
    """Serialize a user document without its password hash."""
    user = {k: v for k, v in doc.items() if k != "password"}
    return serialize_doc(user)


def to_object_id(value: Optional[str]) -> Optional[ObjectId]:
    """Return the ObjectId for ``value``, or None when it is not a valid id."""
    if isinstance(value, ObjectId):
        return value
    if not value or not ObjectId.is_valid(value):
        return None
    return ObjectId(value)


def new_place_document(
    payload: PlaceCreate,
    image_url: str,
    location: Location,
    creator: dict,
) -> dict:
    """Build a place document owned by ``creator`` (a user document)."""
    return {
        "title": payload.title,
        "description": payload.description,
        "image": image_url,
        "address": payload.address,
        "location": location.model_dump(),
        "creatorName": creator["name"],
        "creatorImage": creator["image"],
        "likes": [],
        "comments": [],
        "creator": creator["_id"],
    }


def new_comment_document(author: dict, text: str) -> dict:
    return {
        "_id": ObjectId(),
        "user": author["name"],
        "comment": text,
        "userId": author["_id"],
    }
