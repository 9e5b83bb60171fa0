"""Project, team and file schemas."""

from datetime import datetime
from typing import List, Optional

from pydantic import Field

from artisans.models.project import ProjectStatus
from artisans.models.project_file import FileKind
from artisans.models.project_member import MemberRole
from artisans.schemas.base import CamelModel


class ProjectCreate(CamelModel):
    name: str = Field(min_length=1, max_length=300)
    description: Optional[str] = None
    location: Optional[str] = None
    budget: Optional[int] = Field(None, ge=0)


class ProjectUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=300)
    description: Optional[str] = None
    status: Optional[ProjectStatus] = None
    progress: Optional[int] = Field(None, ge=0, le=100)
    location: Optional[str] = None
    budget: Optional[int] = Field(None, ge=0)


class TeamMemberOut(CamelModel):
    user_id: int
    username: str
    full_name: str
    role: MemberRole
    added_at: Optional[datetime] = None


class TeamMemberAdd(CamelModel):
    username: str
    role: MemberRole = MemberRole.CONTRACTOR


class ProjectOut(CamelModel):
    id: int
    name: str
    description: Optional[str] = None
    status: ProjectStatus
    progress: int
    location: Optional[str] = None
    budget: Optional[int] = None
    client_id: int
    version: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    team_members: List[TeamMemberOut] = []


class ProjectFileOut(CamelModel):
    id: int
    project_id: int
    kind: FileKind
    filename: str
    url: str
    content_type: Optional[str] = None
    size: int
    uploaded_by: int
    created_at: Optional[datetime] = None


class UploadResultOut(CamelModel):
    """Per-file outcome: ``url`` on success, ``error`` on failure."""
    filename: str
    url: Optional[str] = None
    error: Optional[str] = None
    size: int = 0


class FileUploadOut(CamelModel):
    files: List[ProjectFileOut]
    results: List[UploadResultOut]
