"""Pydantic models for customer API payloads."""

from pydantic import BaseModel


class CheckInRequest(BaseModel):
    """Check a new customer in."""

    name: str
    duration: int = 60


class UpdateCustomerRequest(BaseModel):
    """Rename a customer and/or re-check them in with a new duration."""

    name: str | None = None
    duration: int | None = None
