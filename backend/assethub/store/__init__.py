"""
AssetHub Backend — Store Package
=================================

Repository interfaces (base) and their SQLAlchemy implementation.
"""

from assethub.store.base import Store
from assethub.store.sqlalchemy_store import SqlAlchemyStore

__all__ = ["SqlAlchemyStore", "Store"]
