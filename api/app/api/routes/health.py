from fastapi import APIRouter, Depends, HTTPException, status

from app.services.errors import RepositoryUnavailableError
from app.services.storage import get_storage

router = APIRouter()


@router.get("/healthz")
async def healthz() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/readyz")
async def readyz(storage=Depends(get_storage)) -> dict[str, str]:
    try:
        await storage.ping()
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return {"status": "ready"}
