"""Pydantic models for the outbound-call request and its result."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class OutboundCallRequest(BaseModel):
    """Body of ``POST /outbound-call``.

    Field names follow the camelCase JSON the lead form sends.  The phone
    number is optional here so a missing number produces our own 400
    instead of a schema error.
    """

    model_config = ConfigDict(populate_by_name=True)

    inquiry_id: Optional[str] = Field(default=None, alias="inquiryId")
    phone_number: Optional[str] = Field(default=None, alias="phoneNumber")
    customer_name: Optional[str] = Field(default=None, alias="customerName")
    preferred_area: Optional[str] = Field(default=None, alias="preferredArea")
    budget: Optional[str] = None
    language: str = "hindi"


class CallResult(BaseModel):
    """Returned once the provider has accepted the call."""

    provider: str
    call_id: Optional[str] = None
    language: str
    data: dict[str, Any] = {}
