"""
HTTP tests for signup, login and the user listing.
"""

import pytest
from jose import jwt
from pymongo.errors import DuplicateKeyError

from app.security.auth import JWT_ALGORITHM, JWT_SECRET, hash_password, verify_password


def _signup_form(**overrides):
    data = {"name": "Max", "email": "Max@Example.com", "password": "supersecret"}
    data.update(overrides)
    return data


class TestSignup:

    @pytest.mark.asyncio
    async def test_signup(self, test_client, mock_db, mock_s3, sample_image_bytes):
        response = await test_client.post(
            "/api/users/signup",
            data=_signup_form(),
            files={"image": ("max.png", sample_image_bytes, "image/png")},
        )

        assert response.status_code == 201
        body = response.json()
        assert body["email"] == "max@example.com"

        inserted = mock_db.users.insert_one.await_args.args[0]
        assert str(inserted["_id"]) == body["userId"]
        assert inserted["email"] == "max@example.com"
        assert inserted["places"] == []
        assert inserted["image"].endswith("/users/generated.jpg")
        assert inserted["password"] != "supersecret"
        assert verify_password("supersecret", inserted["password"])

        claims = jwt.decode(body["token"], JWT_SECRET, algorithms=[JWT_ALGORITHM])
        assert claims["sub"] == body["userId"]
        assert claims["email"] == "max@example.com"

    @pytest.mark.asyncio
    async def test_signup_existing_email(self, test_client, mock_db, mock_s3, user_doc, sample_image_bytes):
        mock_db.users.find_one.return_value = {"_id": user_doc["_id"]}

        response = await test_client.post(
            "/api/users/signup",
            data=_signup_form(),
            files={"image": ("max.png", sample_image_bytes, "image/png")},
        )

        assert response.status_code == 422
        assert response.json()["detail"] == "User exists already, please login instead."
        mock_s3.upload_image.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_signup_race_on_unique_email(self, test_client, mock_db, mock_s3, sample_image_bytes):
        mock_db.users.insert_one.side_effect = DuplicateKeyError("E11000 duplicate key")

        response = await test_client.post(
            "/api/users/signup",
            data=_signup_form(),
            files={"image": ("max.png", sample_image_bytes, "image/png")},
        )

        assert response.status_code == 422
        mock_s3.delete_image_by_url.assert_awaited_once()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "overrides",
        [{"email": "not-an-email"}, {"password": "short"}, {"name": "   "}],
    )
    async def test_signup_invalid_inputs(self, test_client, mock_db, overrides, sample_image_bytes):
        response = await test_client.post(
            "/api/users/signup",
            data=_signup_form(**overrides),
            files={"image": ("max.png", sample_image_bytes, "image/png")},
        )

        assert response.status_code == 422
        assert response.json()["detail"] == "Invalid inputs passed, please check your data."
        mock_db.users.insert_one.assert_not_awaited()


class TestLogin:

    @pytest.mark.asyncio
    async def test_login(self, test_client, mock_db, user_doc):
        user_doc["password"] = hash_password("supersecret")
        mock_db.users.find_one.return_value = user_doc

        response = await test_client.post(
            "/api/users/login", json={"email": "MAX@example.com", "password": "supersecret"}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["userId"] == str(user_doc["_id"])
        assert body["email"] == "max@example.com"
        mock_db.users.find_one.assert_awaited_once_with({"email": "max@example.com"})

    @pytest.mark.asyncio
    async def test_login_wrong_password(self, test_client, mock_db, user_doc):
        user_doc["password"] = hash_password("supersecret")
        mock_db.users.find_one.return_value = user_doc

        response = await test_client.post(
            "/api/users/login", json={"email": "max@example.com", "password": "wrong-password"}
        )

        assert response.status_code == 403
        assert response.json()["detail"] == "Invalid credentials, could not log you in."

    @pytest.mark.asyncio
    async def test_login_unknown_email(self, test_client, mock_db):
        response = await test_client.post(
            "/api/users/login", json={"email": "nobody@example.com", "password": "whatever"}
        )

        assert response.status_code == 403


class TestListUsers:

    @pytest.mark.asyncio
    async def test_get_users_hides_passwords(self, test_client, mock_db, user_doc, cursor_of):
        mock_db.users.find.return_value = cursor_of([user_doc])

        response = await test_client.get("/api/users")

        assert response.status_code == 200
        users = response.json()["users"]
        assert users[0]["id"] == str(user_doc["_id"])
        assert "password" not in users[0]
        assert mock_db.users.find.call_args.kwargs["projection"] == {"password": 0}
