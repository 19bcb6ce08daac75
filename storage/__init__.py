"""Storage module for user uploaded media.

Objects live in one bucket under a per-user folder ({user_id}/...). Removal
runs with the service-role client once ownership has been checked against
the object path.
"""

import logging
from typing import Optional
from urllib.parse import unquote, urlparse

from storage3.exceptions import StorageException

from config import settings_conf
from database import get_service_client

logger = logging.getLogger(__name__)

PUBLIC_OBJECT_PREFIX = "/storage/v1/object/public/"

class StorageError(Exception):
    """Base exception for storage operations."""
    pass

class NotOwnerError(StorageError):
    """Raised when a user tries to remove another user's object."""
    pass

class InvalidObjectURLError(StorageError):
    """Raised when no object path can be derived from a URL."""
    pass

def owns_object(path: str, user_id: str) -> bool:
    """Whether an in-bucket object path lies in the user's top-level folder."""
    return bool(user_id) and path.startswith(f"{user_id}/")

def object_path(url: str, bucket: Optional[str] = None) -> str:
    """Derive the in-bucket path of an object from its public URL.

    Args:
        url: Public object URL (.../storage/v1/object/public/{bucket}/{path})
        bucket: Bucket name, defaults to the storage_bucket setting

    Raises:
        InvalidObjectURLError: If the URL does not point into the bucket
    """
    bucket = bucket or settings_conf['storage_bucket']
    path = unquote(urlparse(url).path)

    marker = f"{PUBLIC_OBJECT_PREFIX}{bucket}/"
    index = path.find(marker)
    if index == -1:
        raise InvalidObjectURLError(f"URL is not an object in bucket {bucket}")

    object_key = path[index + len(marker):]
    if not object_key:
        raise InvalidObjectURLError("URL has no object path")
    return object_key

async def delete_object(url: str, user_id: str, client=None) -> str:
    """Remove a user's object.

    Returns:
        The removed object path

    Raises:
        NotOwnerError: If the URL is not an object in the user's folder
        StorageError: If the removal fails
    """
    bucket = settings_conf['storage_bucket']
    try:
        path = object_path(url, bucket)
    except InvalidObjectURLError:
        raise NotOwnerError("Unauthorized")
    if not owns_object(path, user_id):
        raise NotOwnerError("Unauthorized")

    if client is None:
        client = await get_service_client()

    try:
        await client.storage.from_(bucket).remove([path])
    except StorageException as e:
        logger.error(f"Failed to remove {path} from {bucket}: {e}")
        raise StorageError(str(e))

    logger.info(f"Removed {path} from {bucket}")
    return path

__all__ = [
    'delete_object',
    'object_path',
    'owns_object',
    'StorageError',
    'NotOwnerError',
    'InvalidObjectURLError',
]
