"""
AssetHub Backend — Team Schemas
================================
"""

import uuid
from datetime import datetime
from typing import List

from pydantic import BaseModel, Field


class TeamCreate(BaseModel):
    name: str = Field(default="", max_length=255)
    managers: List[uuid.UUID] = Field(default_factory=list)
    members: List[uuid.UUID] = Field(default_factory=list)


class TeamUserRequest(BaseModel):
    user_id: uuid.UUID


class TeamResponse(BaseModel):
    id: uuid.UUID
    name: str
    created_by: uuid.UUID
    managers: List[uuid.UUID]
    members: List[uuid.UUID]
    created_at: datetime
