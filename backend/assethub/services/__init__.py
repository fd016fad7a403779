"""
Business services. Each is constructed once by the ServiceContainer and
receives the request's Store on every call.
"""

from assethub.services.access import AccessResolver, Operation
from assethub.services.folder_service import FolderService
from assethub.services.manager_service import ManagerService
from assethub.services.note_service import NoteService
from assethub.services.share_service import ShareService
from assethub.services.team_service import TeamService

__all__ = [
    "AccessResolver",
    "FolderService",
    "ManagerService",
    "NoteService",
    "Operation",
    "ShareService",
    "TeamService",
]
