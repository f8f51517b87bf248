from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.common import PatchRequest


class JobOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int
    title: str
    salary: int | None = None
    equity: Decimal | None = None
    company_handle: str = Field(alias="companyHandle")


class JobCreateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    title: str = Field(min_length=1)
    salary: int | None = Field(default=None, ge=0)
    equity: Decimal | None = Field(default=None, ge=0, le=1)
    company_handle: str = Field(min_length=1, alias="companyHandle")


class JobPatchRequest(PatchRequest):
    """Partial job update; id and company are immutable."""

    title: str | None = Field(default=None, min_length=1)
    salary: int | None = Field(default=None, ge=0)
    equity: Decimal | None = Field(default=None, ge=0, le=1)


class JobDeletedOut(BaseModel):
    deleted: int
