import asyncio, os
from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorClient
from dotenv import load_dotenv
from passlib.context import CryptContext
load_dotenv()

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

async def main():
    client = AsyncIOMotorClient(os.getenv("MONGO_URI"))
    db = client[os.getenv("DB_NAME","places")]
    user_id = ObjectId()
    place_id = ObjectId()
    image = "https://upload.wikimedia.org/wikipedia/commons/1/10/Empire_State_Building_%28aerial_view%29.jpg"

    await db.users.insert_one(
        {
            "_id": user_id,
            "name": "Demo User",
            "email": "demo@example.com",
            "password": pwd_context.hash("demo-password"),
            "image": image,
            "places": [place_id],
        }
    )

    await db.places.insert_one(
        {
            "_id": place_id,
            "title": "Empire State Building",
            "description": "One of the most famous sky scrapers in the world!",
            "image": image,
            "address": "20 W 34th St, New York, NY 10001",
            "location": {"lat": 40.7484405, "lng": -73.9878584},
            "creatorName": "Demo User",
            "creatorImage": image,
            "likes": [],
            "comments": [],
            "creator": user_id,
        }
    )

    print("Seeded demo data successfully!")
    print(f"   - Created user: {user_id} (demo@example.com / demo-password)")
    print(f"   - Created place: {place_id}")
    client.close()

asyncio.run(main())
