"""
AssetHub Backend — ORM Models
==============================

Importing this package registers every table with Base.metadata, which is
what Alembic autogenerate and the test schema fixture rely on.
"""

from assethub.models.asset import Folder, Note
from assethub.models.share import FolderShare, NoteShare
from assethub.models.team import Team, TeamManager, TeamMember
from assethub.models.user import User

__all__ = [
    "Folder",
    "FolderShare",
    "Note",
    "NoteShare",
    "Team",
    "TeamManager",
    "TeamMember",
    "User",
]
