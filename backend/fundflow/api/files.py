from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse

from fundflow.storage import BlobStorage, StorageError, get_storage

router = APIRouter(prefix="/files", tags=["files"])


@router.get("/{path:path}")
def download(path: str, storage: BlobStorage = Depends(get_storage)):
    try:
        target = storage.open(path)
    except (StorageError, FileNotFoundError):
        raise HTTPException(status_code=404, detail="Arquivo nao encontrado")
    return FileResponse(target, filename=target.name)
