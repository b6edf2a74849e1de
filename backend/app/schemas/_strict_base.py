"""Schema baselines shared by request and response DTOs."""

from pydantic import BaseModel, ConfigDict


class StrictRequestModel(BaseModel):
    """Request DTO base that always forbids unexpected fields."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)


class ORMResponseModel(BaseModel):
    """Response DTO base that reads straight from ORM instances."""

    model_config = ConfigDict(from_attributes=True)
