from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.core.security import require_catalog_writer
from app.schemas.jobs import JobCreateRequest, JobDeletedOut, JobOut, JobPatchRequest
from app.services.errors import (
    RepositoryNotFoundError,
    RepositoryUnavailableError,
    RepositoryValidationError,
)
from app.services.jobs import get_job_repository

router = APIRouter()


@router.post("", response_model=JobOut, status_code=status.HTTP_201_CREATED)
async def create_job(
    payload: JobCreateRequest,
    _principal=Depends(require_catalog_writer),
    repository=Depends(get_job_repository),
) -> JobOut:
    try:
        row = await repository.create(
            title=payload.title,
            salary=payload.salary,
            equity=payload.equity,
            company_handle=payload.company_handle,
        )
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return JobOut(**row)


@router.get("", response_model=list[JobOut])
async def list_jobs(
    title_like: str | None = Query(default=None, alias="titleLike"),
    min_salary: str | None = Query(default=None, alias="minSalary"),
    has_equity: str | None = Query(default=None, alias="hasEquity"),
    repository=Depends(get_job_repository),
) -> list[JobOut]:
    try:
        rows = await repository.find(
            {
                "titleLike": title_like,
                "minSalary": min_salary,
                "hasEquity": has_equity,
            }
        )
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return [JobOut(**row) for row in rows]


@router.get("/{job_id}", response_model=JobOut)
async def get_job(job_id: int, repository=Depends(get_job_repository)) -> JobOut:
    try:
        row = await repository.get(job_id)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return JobOut(**row)


@router.patch("/{job_id}", response_model=JobOut)
async def patch_job(
    job_id: int,
    payload: JobPatchRequest,
    _principal=Depends(require_catalog_writer),
    repository=Depends(get_job_repository),
) -> JobOut:
    try:
        row = await repository.update(job_id, payload.field_updates())
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return JobOut(**row)


@router.delete("/{job_id}", response_model=JobDeletedOut)
async def delete_job(
    job_id: int,
    _principal=Depends(require_catalog_writer),
    repository=Depends(get_job_repository),
) -> JobDeletedOut:
    try:
        await repository.remove(job_id)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return JobDeletedOut(deleted=job_id)
