import mimetypes

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response

from medstore.adapters.storage import StorageError
from medstore.api.deps import get_storage

router = APIRouter(prefix="/api/files", tags=["files"])


@router.get("/{key:path}", summary="Download a document through a signed URL")
def download(
    key: str,
    expires: int = Query(...),
    signature: str = Query(...),
    storage=Depends(get_storage),
):
    if not storage.verify(key, expires, signature):
        raise HTTPException(status_code=403, detail="Link expired or invalid")
    try:
        data = storage.get(key)
    except FileNotFoundError:
        raise HTTPException(status_code=404, detail="Document not found")
    except StorageError:
        raise HTTPException(status_code=502, detail="Storage unavailable")
    media_type = mimetypes.guess_type(key)[0] or "application/octet-stream"
    return Response(content=data, media_type=media_type, headers={"Cache-Control": "no-store"})
