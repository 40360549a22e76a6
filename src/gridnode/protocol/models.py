"""Pydantic models for hub REST API replies."""

from pydantic import BaseModel, ConfigDict, Field


class HubStatusReply(BaseModel):
    """Response from GET /grid/api/proxy."""

    model_config = ConfigDict(populate_by_name=True)

    message: str = Field(default="", alias="msg")
    success: bool
