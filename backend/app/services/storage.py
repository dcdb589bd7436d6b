"""
Local file storage for uploaded documents.

Files land under `settings.upload_dir/<folder>/` with a random name and are
served from `settings.upload_base_url`.
"""

import asyncio
import logging
import os
import uuid
from fastapi import UploadFile, HTTPException, status

from backend.app.core.config import settings

logger = logging.getLogger(__name__)

ALLOWED_CONTENT_TYPES = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
    "application/pdf": ".pdf",
}


def _write(path: str, data: bytes) -> None:
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "wb") as fh:
        fh.write(data)


class FileStorage:

    @staticmethod
    async def save(file: UploadFile, folder: str) -> str:
        """
        Persist an upload and return its public URL.

        Raises:
            HTTPException 400: unsupported file type or empty file
            HTTPException 413: file larger than max_upload_size_mb
        """
        extension = ALLOWED_CONTENT_TYPES.get(file.content_type)
        if extension is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Only JPEG, PNG, WEBP and PDF files are allowed"
            )

        data = await file.read()
        if not data:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Uploaded file is empty"
            )
        if len(data) > settings.max_upload_size_mb * 1024 * 1024:
            raise HTTPException(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                detail=f"File exceeds {settings.max_upload_size_mb} MB"
            )

        filename = f"{uuid.uuid4().hex}{extension}"
        path = os.path.join(settings.upload_dir, folder, filename)
        await asyncio.to_thread(_write, path, data)
        logger.info("Stored upload %s (%d bytes)", path, len(data))

        return f"{settings.upload_base_url.rstrip('/')}/{folder}/{filename}"
