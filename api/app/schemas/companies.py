from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.common import PatchRequest


class CompanyJobOut(BaseModel):
    id: int
    title: str
    salary: int | None = None
    equity: Decimal | None = None


class CompanyOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    handle: str
    name: str
    description: str | None = None
    num_employees: int | None = Field(default=None, alias="numEmployees")
    logo_url: str | None = Field(default=None, alias="logoUrl")


class CompanyDetailOut(CompanyOut):
    jobs: list[CompanyJobOut] = Field(default_factory=list)


class CompanyCreateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    handle: str = Field(min_length=1, max_length=25, pattern=r"^[a-z0-9-]+$")
    name: str = Field(min_length=1)
    description: str | None = None
    num_employees: int | None = Field(default=None, ge=0, alias="numEmployees")
    logo_url: str | None = Field(default=None, alias="logoUrl")


class CompanyPatchRequest(PatchRequest):
    """Partial company update; the handle is immutable."""

    name: str | None = Field(default=None, min_length=1)
    description: str | None = None
    num_employees: int | None = Field(default=None, ge=0, alias="numEmployees")
    logo_url: str | None = Field(default=None, alias="logoUrl")


class CompanyDeletedOut(BaseModel):
    deleted: str
