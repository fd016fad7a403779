"""
AssetHub Backend — Folder/Note Request and Response Schemas
============================================================

What:  Pydantic models for asset payloads.
Why:   FolderResponse and NoteResponse double as the asset-metadata cache
       snapshot, so a cache hit can be returned to the caller as-is.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class FolderCreate(BaseModel):
    # Emptiness is a business rule checked by FolderService (ValidationError)
    name: str = Field(default="", max_length=255)
    description: str = Field(default="")


class FolderUpdate(BaseModel):
    name: str = Field(default="", max_length=255)
    description: str = Field(default="")


class NoteCreate(BaseModel):
    title: str = Field(default="", max_length=255)
    body: str = Field(default="")


class NoteUpdate(BaseModel):
    title: str = Field(default="", max_length=255)
    body: str = Field(default="")


# ══════════════════════════════════════════════════════════════════════════
# Response Models (also the cached snapshot format)
# ══════════════════════════════════════════════════════════════════════════


class FolderResponse(BaseModel):
    id: uuid.UUID
    name: str
    description: str
    owner_id: uuid.UUID
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class NoteResponse(BaseModel):
    id: uuid.UUID
    title: str
    body: str
    folder_id: uuid.UUID
    owner_id: uuid.UUID
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class AssetInfo(BaseModel):
    """
    What:  One row of a manager-oversight listing.

    access_level is empty when `held_by` owns the asset, otherwise it is the
    level of the grant `held_by` holds on it.
    """
    asset_type: str = Field(description="folder or note")
    asset_id: uuid.UUID
    name: str
    owner_id: uuid.UUID
    owner_name: str
    access_level: str = Field(default="", description="Empty for owned assets")
    held_by: uuid.UUID = Field(description="Team member this row was collected for")
    created_at: Optional[datetime] = None
