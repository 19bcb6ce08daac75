"""Media upload management endpoints."""

import logging
from fastapi import APIRouter, HTTPException, status, Depends
from typing import Optional
from pydantic import BaseModel

from storage import delete_object, StorageError, NotOwnerError
from auth import Session, get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/upload",
    tags=["Uploads"]
)

class DeleteRequest(BaseModel):
    """Request model for removing an uploaded file."""
    url: Optional[str] = None

@router.delete("/delete")
async def delete_upload(request: DeleteRequest, session: Session = Depends(get_current_user)):
    """Remove one of the caller's uploaded files."""
    if not request.url:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No URL provided"
        )

    try:
        await delete_object(request.url, session.user_id)
    except NotOwnerError:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Unauthorized"
        )
    except (StorageError, RuntimeError) as e:
        logger.error(f"Delete error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Delete failed"
        )

    return {"success": True}
