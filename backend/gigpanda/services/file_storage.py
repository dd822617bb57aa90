import secrets
from typing import NamedTuple, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.errors import StorageError
from ..core.logging import setup_logger
from ..models.stored_file import StoredFile

logger = setup_logger("file_storage")

ALLOWED_MIMETYPES = (
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "image/jpeg",
    "image/png",
    "image/gif",
    "video/mp4",
    "text/plain",
)

class Upload(NamedTuple):
    filename: str
    mimetype: str
    data: bytes

class FileStore:
    """Blob storage for submission files, kept in the ``stored_files`` table."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def save(self, filename: str, mimetype: str, data: bytes) -> dict:
        if not data:
            raise StorageError(f"{filename} is empty")
        stored = StoredFile(
            storage_key=secrets.token_hex(16),
            filename=filename,
            mimetype=mimetype,
            size=len(data),
            data=data,
        )
        # written with the submission that references it
        self.session.add(stored)
        logger.info(f"Stored {filename} as {stored.storage_key} ({stored.size} bytes)")
        return {
            "filename": stored.filename,
            "storageKey": stored.storage_key,
            "mimetype": stored.mimetype,
            "size": stored.size,
        }

    async def get(self, storage_key: str) -> Optional[StoredFile]:
        return await self.session.scalar(
            select(StoredFile).where(StoredFile.storage_key == storage_key)
        )
