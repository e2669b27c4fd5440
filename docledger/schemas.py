"""Pydantic schemas for ledger records and host API payloads."""
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class StudentDoc(BaseModel):
    """A tracked document: its lifecycle status and current owner."""
    model_config = ConfigDict(populate_by_name=True)

    status: str = Field("", alias="docStatus", description="Free-form lifecycle label")
    owner: str = Field("", alias="owner", description="Free-form identity label")


class InvokeRequest(BaseModel):
    """Request body for POST /v1/invoke."""
    function: str = Field(..., description="Chaincode function name")
    args: list[str] = Field(default_factory=list, description="Ordered string arguments")


class InitRequest(BaseModel):
    """Request body for POST /v1/init."""
    args: list[str] = Field(default_factory=list)


class InvokeResponse(BaseModel):
    """Response body for chaincode invocations."""
    status: int
    message: str = ""
    payload: str = ""
    tx_id: Optional[str] = None
