import asyncio
import os
import uuid
from datetime import datetime, timezone
from typing import Optional
from urllib.parse import unquote, urlparse
import boto3
from botocore.exceptions import BotoCoreError, ClientError, NoCredentialsError
from fastapi import HTTPException
import logging
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

class S3Service:
    def __init__(self):
        self.bucket_name = os.getenv("AWS_S3_BUCKET_NAME")
        self.region = os.getenv("AWS_REGION", "us-east-1")

        if not self.bucket_name:
            raise ValueError("AWS_S3_BUCKET_NAME environment variable is required")

        try:
            self.s3_client = boto3.client(
                's3',
                aws_access_key_id=os.getenv("AWS_ACCESS_KEY_ID"),
                aws_secret_access_key=os.getenv("AWS_SECRET_ACCESS_KEY"),
                region_name=self.region
            )
        except NoCredentialsError:
            raise ValueError("AWS credentials not found. Please set AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY")

    def public_url(self, s3_key: str) -> str:
        return f"https://{self.bucket_name}.s3.{self.region}.amazonaws.com/{s3_key}"

    def key_from_url(self, url: str) -> Optional[str]:
        """
        Return the object key of a public URL produced by ``public_url``,
        or None when the URL points somewhere else.
        """
        parsed = urlparse(url or "")
        if not parsed.netloc.startswith(f"{self.bucket_name}.s3"):
            return None
        key = unquote(parsed.path.lstrip("/"))
        return key or None

    async def upload_image(self, file_content: bytes, filename: str, content_type: str, prefix: str = "images") -> dict:
        """
        Upload image to S3 and return metadata
        """
        try:
            # Generate unique key for the image
            image_id = str(uuid.uuid4())
            file_extension = filename.rsplit('.', 1)[-1].lower() if '.' in filename else 'jpg'
            s3_key = f"{prefix}/{image_id}.{file_extension}"
            uploaded_at = datetime.now(timezone.utc)

            # Upload to S3 off the event loop
            await asyncio.to_thread(
                self.s3_client.put_object,
                Bucket=self.bucket_name,
                Key=s3_key,
                Body=file_content,
                ContentType=content_type,
                Metadata={
                    'original_filename': filename,
                    'uploaded_at': uploaded_at.isoformat(),
                    'image_id': image_id
                }
            )
            logger.info("Uploaded image %s (%d bytes)", s3_key, len(file_content))

            return {
                "image_id": image_id,
                "s3_key": s3_key,
                "s3_url": self.public_url(s3_key),
                "filename": filename,
                "content_type": content_type,
                "size": len(file_content),
                "uploaded_at": uploaded_at
            }

        except (BotoCoreError, ClientError) as e:
            logger.error(f"S3 upload error: {e}")
            raise HTTPException(status_code=500, detail="Failed to upload image, please try again")

    async def delete_image(self, s3_key: str) -> bool:
        """
        Delete image from S3
        """
        try:
            await asyncio.to_thread(self.s3_client.delete_object, Bucket=self.bucket_name, Key=s3_key)
            logger.info("Deleted image %s", s3_key)
            return True
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Error deleting image from S3: {e}")
            return False

    async def delete_image_by_url(self, url: str) -> bool:
        s3_key = self.key_from_url(url)
        if s3_key is None:
            logger.warning("Not deleting image outside bucket %s: %s", self.bucket_name, url)
            return False
        return await self.delete_image(s3_key)

# Provider (singleton) for dependency injection
_s3_service_instance = None

def get_s3_service() -> "S3Service":
    global _s3_service_instance
    if _s3_service_instance is None:
        try:
            _s3_service_instance = S3Service()
        except ValueError as e:
            logger.error(f"Image storage is not configured: {e}")
            raise HTTPException(status_code=500, detail="Image storage is not configured")
    return _s3_service_instance
