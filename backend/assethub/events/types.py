"""
AssetHub Backend — Change Event Types
======================================

What:  Typed, immutable facts describing completed state transitions.
Why:   The CacheInvalidator (possibly in another process) rebuilds its view
       of what changed purely from these payloads.
How:   Pydantic models serialized as camelCase JSON. The `eventType` field is
       the discriminant a consumer reads before choosing a model.

Streams:
    asset  → FOLDER_* / NOTE_* events, partition key = assetId
    team   → TEAM_CREATED, MEMBER_*, MANAGER_* events, partition key = teamId

    Keying by aggregate id means a transport with per-key ordering delivers
    one asset's (or team's) events in commit order.

Wire example:
    {"eventType": "FOLDER_SHARED", "assetType": "folder", "assetId": "…",
     "ownerId": "…", "actionBy": "…", "timestamp": "2024-01-15T12:00:00Z",
     "sharedWithUserId": "…", "accessLevel": "read", "sharedByUserName": "alice"}
"""

import json
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import ClassVar, Dict, FrozenSet, List, Optional, Type, Union

from pydantic import BaseModel, Field, model_validator
from pydantic.alias_generators import to_camel

from assethub.exceptions import EventDecodeError
from assethub.schemas.common import AssetType


STREAM_ASSET = "asset"
STREAM_TEAM = "team"


class EventType(str, Enum):
    FOLDER_CREATED = "FOLDER_CREATED"
    FOLDER_UPDATED = "FOLDER_UPDATED"
    FOLDER_DELETED = "FOLDER_DELETED"
    FOLDER_SHARED = "FOLDER_SHARED"
    FOLDER_UNSHARED = "FOLDER_UNSHARED"

    NOTE_CREATED = "NOTE_CREATED"
    NOTE_UPDATED = "NOTE_UPDATED"
    NOTE_DELETED = "NOTE_DELETED"
    NOTE_SHARED = "NOTE_SHARED"
    NOTE_UNSHARED = "NOTE_UNSHARED"

    TEAM_CREATED = "TEAM_CREATED"
    MEMBER_ADDED = "MEMBER_ADDED"
    MEMBER_REMOVED = "MEMBER_REMOVED"
    MANAGER_ADDED = "MANAGER_ADDED"
    MANAGER_REMOVED = "MANAGER_REMOVED"

    @classmethod
    def for_asset(cls, asset_type: AssetType, action: str) -> "EventType":
        """EventType.for_asset(AssetType.NOTE, "SHARED") → NOTE_SHARED"""
        return cls(f"{asset_type.value.upper()}_{action}")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _Event(BaseModel):
    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
        "frozen": True,
    }

    stream: ClassVar[str]
    allowed_types: ClassVar[FrozenSet[EventType]] = frozenset()

    event_type: EventType
    timestamp: datetime = Field(default_factory=_utcnow)

    @model_validator(mode="after")
    def _check_event_type(self):
        if self.allowed_types and self.event_type not in self.allowed_types:
            raise ValueError(
                f"{type(self).__name__} cannot carry event type {self.event_type.value}"
            )
        return self

    @property
    def partition_key(self) -> str:
        raise NotImplementedError

    def to_payload(self) -> bytes:
        return self.model_dump_json(by_alias=True).encode("utf-8")


# ══════════════════════════════════════════════════════════════════════════
# Asset events
# ══════════════════════════════════════════════════════════════════════════

class AssetEvent(_Event):
    stream: ClassVar[str] = STREAM_ASSET

    asset_type: AssetType
    asset_id: uuid.UUID
    owner_id: uuid.UUID
    action_by: uuid.UUID

    @property
    def partition_key(self) -> str:
        return str(self.asset_id)


class AssetCreatedEvent(AssetEvent):
    allowed_types: ClassVar[FrozenSet[EventType]] = frozenset(
        {EventType.FOLDER_CREATED, EventType.NOTE_CREATED}
    )

    name: str
    description: str = ""
    # Only set for notes
    folder_id: Optional[uuid.UUID] = None


class AssetUpdatedEvent(AssetEvent):
    allowed_types: ClassVar[FrozenSet[EventType]] = frozenset(
        {EventType.FOLDER_UPDATED, EventType.NOTE_UPDATED}
    )

    name: str
    description: str = ""
    changes: List[str] = Field(default_factory=list)


class AssetDeletedEvent(AssetEvent):
    allowed_types: ClassVar[FrozenSet[EventType]] = frozenset(
        {EventType.FOLDER_DELETED, EventType.NOTE_DELETED}
    )

    name: str


class AssetSharedEvent(AssetEvent):
    allowed_types: ClassVar[FrozenSet[EventType]] = frozenset(
        {EventType.FOLDER_SHARED, EventType.NOTE_SHARED}
    )

    shared_with_user_id: uuid.UUID
    access_level: str
    shared_by_user_name: str = ""


class AssetUnsharedEvent(AssetEvent):
    allowed_types: ClassVar[FrozenSet[EventType]] = frozenset(
        {EventType.FOLDER_UNSHARED, EventType.NOTE_UNSHARED}
    )

    unshared_from_user_id: uuid.UUID
    unshared_by_user_name: str = ""


# ══════════════════════════════════════════════════════════════════════════
# Team events
# ══════════════════════════════════════════════════════════════════════════

class TeamEvent(_Event):
    stream: ClassVar[str] = STREAM_TEAM

    team_id: uuid.UUID
    performed_by: uuid.UUID

    @property
    def partition_key(self) -> str:
        return str(self.team_id)


class TeamCreatedEvent(TeamEvent):
    allowed_types: ClassVar[FrozenSet[EventType]] = frozenset({EventType.TEAM_CREATED})

    team_name: str
    managers: List[uuid.UUID] = Field(default_factory=list)
    members: List[uuid.UUID] = Field(default_factory=list)


class TeamMembershipEvent(TeamEvent):
    allowed_types: ClassVar[FrozenSet[EventType]] = frozenset(
        {
            EventType.MEMBER_ADDED,
            EventType.MEMBER_REMOVED,
            EventType.MANAGER_ADDED,
            EventType.MANAGER_REMOVED,
        }
    )

    target_user_id: uuid.UUID
    user_name: str = ""


ChangeEvent = Union[
    AssetCreatedEvent,
    AssetUpdatedEvent,
    AssetDeletedEvent,
    AssetSharedEvent,
    AssetUnsharedEvent,
    TeamCreatedEvent,
    TeamMembershipEvent,
]


_MODELS: Dict[EventType, Type[_Event]] = {}
for _model in (
    AssetCreatedEvent,
    AssetUpdatedEvent,
    AssetDeletedEvent,
    AssetSharedEvent,
    AssetUnsharedEvent,
    TeamCreatedEvent,
    TeamMembershipEvent,
):
    for _event_type in _model.allowed_types:
        _MODELS[_event_type] = _model


def decode_event(payload: Union[bytes, str]) -> Optional[ChangeEvent]:
    """
    Parse a raw payload by its `eventType` discriminant.

    Returns:
        The typed event, or None when the payload is well-formed JSON with an
        event type this service does not know (newer producers may add some).

    Raises:
        EventDecodeError: payload is not JSON, lacks `eventType`, or does not
        match the schema of its declared type.
    """
    try:
        data = json.loads(payload)
    except ValueError as e:
        raise EventDecodeError(
            message="Change event is not valid JSON", context={"error": str(e)}
        ) from e

    if not isinstance(data, dict) or "eventType" not in data:
        raise EventDecodeError(message="Change event has no eventType")

    try:
        event_type = EventType(data["eventType"])
    except ValueError:
        return None

    try:
        return _MODELS[event_type].model_validate(data)
    except ValueError as e:
        raise EventDecodeError(
            message=f"Change event {event_type.value} does not match its schema",
            context={"event_type": event_type.value, "error": str(e)},
        ) from e
