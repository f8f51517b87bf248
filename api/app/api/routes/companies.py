from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.core.security import require_catalog_writer
from app.schemas.companies import (
    CompanyCreateRequest,
    CompanyDeletedOut,
    CompanyDetailOut,
    CompanyOut,
    CompanyPatchRequest,
)
from app.services.companies import get_company_repository
from app.services.errors import (
    RepositoryConflictError,
    RepositoryNotFoundError,
    RepositoryUnavailableError,
    RepositoryValidationError,
)

router = APIRouter()


@router.post("", response_model=CompanyOut, status_code=status.HTTP_201_CREATED)
async def create_company(
    payload: CompanyCreateRequest,
    _principal=Depends(require_catalog_writer),
    repository=Depends(get_company_repository),
) -> CompanyOut:
    try:
        row = await repository.create(
            handle=payload.handle,
            name=payload.name,
            description=payload.description,
            num_employees=payload.num_employees,
            logo_url=payload.logo_url,
        )
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except RepositoryConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    return CompanyOut(**row)


@router.get("", response_model=list[CompanyOut])
async def list_companies(
    name_like: str | None = Query(default=None, alias="nameLike"),
    min_employees: str | None = Query(default=None, alias="minEmployees"),
    max_employees: str | None = Query(default=None, alias="maxEmployees"),
    repository=Depends(get_company_repository),
) -> list[CompanyOut]:
    try:
        rows = await repository.find(
            {
                "nameLike": name_like,
                "minEmployees": min_employees,
                "maxEmployees": max_employees,
            }
        )
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return [CompanyOut(**row) for row in rows]


@router.get("/{handle}", response_model=CompanyDetailOut)
async def get_company(handle: str, repository=Depends(get_company_repository)) -> CompanyDetailOut:
    try:
        row = await repository.get(handle)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return CompanyDetailOut(**row)


@router.patch("/{handle}", response_model=CompanyOut)
async def patch_company(
    handle: str,
    payload: CompanyPatchRequest,
    _principal=Depends(require_catalog_writer),
    repository=Depends(get_company_repository),
) -> CompanyOut:
    try:
        row = await repository.update(handle, payload.field_updates())
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    return CompanyOut(**row)


@router.delete("/{handle}", response_model=CompanyDeletedOut)
async def delete_company(
    handle: str,
    _principal=Depends(require_catalog_writer),
    repository=Depends(get_company_repository),
) -> CompanyDeletedOut:
    try:
        await repository.remove(handle)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return CompanyDeletedOut(deleted=handle)
