"""
Pydantic models for xBrowserSync request bodies.
"""

from pydantic import BaseModel, ConfigDict


class CreateSyncRequest(BaseModel):
    """Body of ``POST /bookmarks``."""

    model_config = ConfigDict(extra="ignore")

    version: str = ""


class UpdateSyncRequest(BaseModel):
    """Body of ``PUT /bookmarks/{id}``. The payload is opaque to the server."""

    model_config = ConfigDict(extra="ignore")

    bookmarks: str
