"""
AssetHub Backend — Share Grant Schemas
=======================================
"""

import uuid
from datetime import datetime

from pydantic import BaseModel


class ShareRequest(BaseModel):
    # Plain str: an unknown level is reported as a ValidationError by ShareService
    user_id: uuid.UUID
    access_level: str


class ShareGrantResponse(BaseModel):
    asset_id: uuid.UUID
    asset_type: str
    shared_with_user_id: uuid.UUID
    access_level: str
    shared_by: uuid.UUID
    created_at: datetime
