"""
AssetHub Backend — Route Dependencies
======================================

What:  FastAPI dependencies shared by every router.

Identity:
    Authentication happens upstream. The gateway forwards the verified user
    id in `X-User-ID`; the role is looked up here, from the Store, so a
    client can never claim a role it does not have.

    missing / malformed header → 401
    unknown user               → 401
"""

import uuid
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from assethub.container import ServiceContainer
from assethub.database import get_db_session
from assethub.schemas.common import Identity, UserRole
from assethub.store.base import Store
from assethub.store.sqlalchemy_store import SqlAlchemyStore


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


async def get_store(session: AsyncSession = Depends(get_db_session)) -> Store:
    """One Store (unit of work) per request, shared by every dependency."""
    return SqlAlchemyStore(session)


async def get_identity(
    x_user_id: Optional[str] = Header(default=None, alias="X-User-ID"),
    store: Store = Depends(get_store),
) -> Identity:
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-ID header")
    try:
        user_id = uuid.UUID(x_user_id)
    except ValueError:
        raise HTTPException(status_code=401, detail="Malformed X-User-ID header")

    user = await store.users.get(user_id)
    if user is None:
        raise HTTPException(status_code=401, detail="Unknown user")
    return Identity(user_id=user.id, role=UserRole(user.role))
