"""Users router – profile lookups."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from artisans.context import RequestContext
from artisans.database import get_db
from artisans.models.user import User
from artisans.routers.auth import get_context
from artisans.schemas.user import UserOut

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=UserOut)
async def read_me(ctx: RequestContext = Depends(get_context)):
    """Return the authenticated user's profile."""
    return ctx.require_user()


@router.get("/{user_id}", response_model=UserOut)
async def read_user(
    user_id: int,
    ctx: RequestContext = Depends(get_context),
    db: AsyncSession = Depends(get_db),
):
    """Get a user profile by ID."""
    ctx.require_user()
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user
