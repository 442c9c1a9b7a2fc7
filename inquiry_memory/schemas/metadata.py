"""
Metadata API Schemas
"""

from __future__ import annotations

from datetime import datetime

from pydantic import Field

from inquiry_memory.schemas.common import CamelModel


class SessionMetadataResponse(CamelModel):
    """Result of an on-demand metadata refresh."""

    session_id: str
    generated: bool = Field(description="False when the session has no messages yet")
    orientation_blurb: str = ""
    unresolved_edge: str = ""
    last_pivot: str = ""
    generated_at: datetime | None = None


class SessionTitleResponse(CamelModel):
    session_id: str
    title: str | None = Field(
        default=None, description="None until the first exchange is complete"
    )
