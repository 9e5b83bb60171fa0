"""Message schemas."""

from datetime import datetime
from typing import List, Optional

from pydantic import Field

from artisans.schemas.base import CamelModel
from artisans.schemas.project import UploadResultOut


class MessageCreate(CamelModel):
    receiver_id: int
    project_id: Optional[int] = None
    content: str = Field(min_length=1, max_length=5000)


class MessageOut(CamelModel):
    id: int
    sender_id: int
    receiver_id: int
    project_id: Optional[int] = None
    content: str
    images: List[str] = []
    is_read: bool
    created_at: Optional[datetime] = None


class MessageWithImagesOut(CamelModel):
    message: MessageOut
    images: List[UploadResultOut] = []
