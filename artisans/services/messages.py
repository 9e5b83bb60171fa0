"""Direct messages between users, optionally scoped to a project."""

import json
import logging
from typing import List, Optional, Sequence, Tuple

from fastapi import UploadFile
from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from artisans.context import RequestContext
from artisans.errors import NotFound, PermissionDenied, ValidationFailed
from artisans.models.message import Message
from artisans.models.user import User
from artisans.services.notifications import create_notification
from artisans.services.projects import ensure_can_view, get_project
from artisans.services.uploads import UploadResult, save_many

logger = logging.getLogger(__name__)

FOLDER_MESSAGES = "messages"


async def _check_recipients(
    db: AsyncSession, ctx: RequestContext, receiver_id: int, project_id: Optional[int]
) -> User:
    sender = ctx.require_user()
    if receiver_id == sender.id:
        raise ValidationFailed("You cannot message yourself.")
    receiver = await db.get(User, receiver_id)
    if receiver is None:
        raise NotFound("Recipient not found.")

    if project_id is not None:
        project = await get_project(db, project_id)
        await ensure_can_view(db, ctx, project)
        try:
            await ensure_can_view(db, RequestContext(user=receiver), project)
        except PermissionDenied:
            raise ValidationFailed(f"{receiver.username} is not on this project.")
    return receiver


async def send_message(
    db: AsyncSession,
    ctx: RequestContext,
    receiver_id: int,
    content: str,
    project_id: Optional[int] = None,
    images: Sequence[str] = (),
) -> Message:
    content = (content or "").strip()
    if not content and not images:
        raise ValidationFailed("Message cannot be empty.")
    receiver = await _check_recipients(db, ctx, receiver_id, project_id)

    message = Message(
        sender_id=ctx.user_id,
        receiver_id=receiver.id,
        project_id=project_id,
        content=content,
        images_json=json.dumps(list(images)),
    )
    db.add(message)
    await db.flush()

    create_notification(
        db,
        user_id=receiver.id,
        title=f"New message from {ctx.user.full_name}",
        message=content[:120] or "Sent you images",
        type="message",
        link=f"/projects/{project_id}" if project_id else "/messages",
    )
    logger.info(f"Message {message.id} sent from user {ctx.user_id} to user {receiver.id}")
    return message


async def send_message_with_images(
    db: AsyncSession,
    ctx: RequestContext,
    receiver_id: int,
    content: str,
    project_id: Optional[int],
    files: Sequence[UploadFile],
) -> Tuple[Message, List[UploadResult]]:
    """Images are stored under the project, so a project is required."""
    if project_id is None:
        raise ValidationFailed("Images can only be sent in a project conversation.")
    await _check_recipients(db, ctx, receiver_id, project_id)

    results = await save_many(files, project_id, FOLDER_MESSAGES, images_only=True)
    urls = [r.url for r in results if r.ok]
    message = await send_message(db, ctx, receiver_id, content, project_id, urls)
    return message, results


async def list_messages(
    db: AsyncSession,
    ctx: RequestContext,
    project_id: Optional[int] = None,
    with_user_id: Optional[int] = None,
) -> List[Message]:
    """Messages I sent or received, oldest first."""
    user_id = ctx.user_id
    if with_user_id is not None:
        mine = or_(
            and_(Message.sender_id == user_id, Message.receiver_id == with_user_id),
            and_(Message.sender_id == with_user_id, Message.receiver_id == user_id),
        )
    else:
        mine = or_(Message.sender_id == user_id, Message.receiver_id == user_id)

    query = select(Message).where(mine).order_by(Message.created_at, Message.id)
    if project_id is not None:
        query = query.where(Message.project_id == project_id)
    result = await db.execute(query)
    return list(result.scalars().all())


async def mark_message_read(db: AsyncSession, ctx: RequestContext, message_id: int) -> Message:
    message = await db.get(Message, message_id)
    if message is None or message.receiver_id != ctx.user_id:
        raise NotFound("Message not found.")
    message.is_read = True
    await db.flush()
    return message
