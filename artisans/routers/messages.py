"""
Messages router — direct and project conversations.

    POST /api/messages               → send a message (JSON)
    POST /api/messages/with-images   → send a project message with image files
    GET  /api/messages               → my messages (?projectId=, ?withUserId=)
    POST /api/messages/{id}/read     → mark a received message read
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from artisans.context import RequestContext
from artisans.database import get_db
from artisans.routers.auth import get_context
from artisans.schemas.message import MessageCreate, MessageOut, MessageWithImagesOut
from artisans.schemas.project import UploadResultOut
from artisans.services import messages as message_service

router = APIRouter(prefix="/api/messages", tags=["messages"])


@router.post("", response_model=MessageOut, status_code=status.HTTP_201_CREATED)
async def send_message(
    body: MessageCreate,
    ctx: RequestContext = Depends(get_context),
    db: AsyncSession = Depends(get_db),
):
    return await message_service.send_message(db, ctx, body.receiver_id, body.content, body.project_id)


@router.post("/with-images", response_model=MessageWithImagesOut, status_code=status.HTTP_201_CREATED)
async def send_message_with_images(
    receiver_id: int = Form(..., alias="receiverId"),
    project_id: Optional[int] = Form(None, alias="projectId"),
    content: str = Form(""),
    images: List[UploadFile] = File(default=[]),
    ctx: RequestContext = Depends(get_context),
    db: AsyncSession = Depends(get_db),
):
    message, results = await message_service.send_message_with_images(
        db, ctx, receiver_id, content, project_id, images
    )
    return MessageWithImagesOut(
        message=MessageOut.model_validate(message),
        images=[UploadResultOut.model_validate(r) for r in results],
    )


@router.get("", response_model=List[MessageOut])
async def list_messages(
    project_id: Optional[int] = Query(None, alias="projectId"),
    with_user_id: Optional[int] = Query(None, alias="withUserId"),
    ctx: RequestContext = Depends(get_context),
    db: AsyncSession = Depends(get_db),
):
    return await message_service.list_messages(db, ctx, project_id, with_user_id)


@router.post("/{message_id}/read", response_model=MessageOut)
async def mark_read(
    message_id: int,
    ctx: RequestContext = Depends(get_context),
    db: AsyncSession = Depends(get_db),
):
    return await message_service.mark_message_read(db, ctx, message_id)
