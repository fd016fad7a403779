"""
AssetHub Backend — Application Package Initializer
===================================================

What: Marks the `assethub` directory as a Python package.
Why:  Enables module imports like `from assethub.config import settings`.
Who:  Used implicitly by Python's import system and explicitly by Alembic, pytest, and uvicorn.

Architecture Note:
    The backend is a permissioned folder/note store with teams. Requests flow
    through these layers:

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │   Services + AccessResolver         │  ← Authorization, orchestration
    ├──────────────────┬──────────────────┤
    │  Store (SQL)     │  Cache (Redis)   │  ← Ground truth / accelerator
    ├──────────────────┴──────────────────┤
    │  EventEmitter → EventBus → CacheInvalidator
    └─────────────────────────────────────┘

    Every mutation commits to the Store, then publishes a change event.
    The CacheInvalidator consumes those events in the background and keeps
    the cache consistent. The cache never decides an authorization on its own:
    anything it cannot confirm is re-read from the Store.
"""

__version__ = "1.0.0"
