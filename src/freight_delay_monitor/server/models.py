"""Pydantic models for the REST server."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator


class StartRunRequest(BaseModel):
    origin: str = Field(min_length=1)
    destination: str = Field(min_length=1)
    threshold: int = Field(gt=0, description="Delay threshold in minutes")

    @field_validator("threshold", mode="before")
    @classmethod
    def _reject_bool(cls, value: object) -> object:
        # Lax int coercion would turn JSON true into 1.
        if isinstance(value, bool):
            raise ValueError("threshold must be a positive integer")
        return value


class HealthResponse(BaseModel):
    status: str
    version: str
    missing_credentials: list[str] = Field(default_factory=list)
    observer_running: bool = False


class TickResponse(BaseModel):
    ran: bool
    checked: int
    completed: int
    failed: int
    errors: int = 0
    notified: list[str] = Field(default_factory=list)


class ClearedResponse(BaseModel):
    cleared: int
