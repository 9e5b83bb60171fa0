"""
Authentication router — password accounts + JWT cookie / Bearer token.

Endpoints:
    POST /auth/register  → create an account, set JWT cookie
    POST /auth/login     → verify credentials, set JWT cookie, return token
    GET  /auth/logout    → clear JWT cookie
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.responses import JSONResponse
from jose import JWTError, jwt
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from werkzeug.security import check_password_hash, generate_password_hash

from artisans.config import settings
from artisans.context import RequestContext
from artisans.database import get_db
from artisans.models.notification import NotificationPriority
from artisans.models.user import User
from artisans.schemas.user import Token, UserCreate, UserLogin, UserOut
from artisans.services.invitations import list_pending_invitations
from artisans.services.notifications import create_notification

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

COOKIE_KEY = "access_token"


# ═══════════════════════════════════════════════════════════════
#  Helpers
# ═══════════════════════════════════════════════════════════════

def hash_password(password: str) -> str:
    return generate_password_hash(password)


def verify_password(password: str, stored: Optional[str]) -> bool:
    if not stored:
        return False
    return check_password_hash(stored, password)


def create_access_token(data: dict) -> str:
    """Create a signed JWT with an expiry claim."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + timedelta(
        minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES
    )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def _set_auth_cookie(response: Response, user_id: int) -> str:
    """Attach the JWT cookie to a response and return the token."""
    token = create_access_token({"sub": str(user_id)})
    response.set_cookie(
        key=COOKIE_KEY,
        value=token,
        httponly=True,
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        samesite="lax",
    )
    return token


def _token_from_request(request: Request) -> Optional[str]:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.lower().startswith("bearer "):
        return auth_header[7:].strip()
    return request.cookies.get(COOKIE_KEY)


async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> Optional[User]:
    """
    Extract the JWT from the Authorization header or cookie and return the User.
    Returns None when no valid token is present (allows public endpoints).
    """
    token = _token_from_request(request)
    if not token:
        return None
    try:
        payload = jwt.decode(
            token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM]
        )
        user_id: int = int(payload.get("sub", 0))
        if not user_id:
            return None
    except (JWTError, ValueError):
        return None

    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_context(current_user: Optional[User] = Depends(get_current_user)) -> RequestContext:
    """Per-request identity, passed explicitly into every service call."""
    return RequestContext(user=current_user)


# ═══════════════════════════════════════════════════════════════
#  Routes
# ═══════════════════════════════════════════════════════════════

@router.post("/register", response_model=UserOut, status_code=status.HTTP_201_CREATED)
async def register(
    body: UserCreate,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    """Create an account and sign it in. Pending invitations for the email become notifications."""
    email = body.email.lower()
    existing = await db.execute(
        select(User).where(or_(User.username == body.username, User.email == email))
    )
    if existing.scalars().first():
        raise HTTPException(status_code=400, detail="Username or email already registered.")

    user = User(
        username=body.username,
        email=email,
        full_name=body.full_name,
        password_hash=hash_password(body.password),
        role=body.role,
        service_type=body.service_type,
        business_name=body.business_name,
        phone=body.phone,
        bio=body.bio,
    )
    db.add(user)
    await db.flush()

    for invitation in await list_pending_invitations(db, RequestContext(user=user)):
        create_notification(
            db,
            user_id=user.id,
            title="Team Invitation Waiting",
            message=f"You have a pending invitation to join a project as {invitation.role.value.replace('_', ' ')}",
            type="invitation",
            priority=NotificationPriority.HIGH,
            link=f"/join/{invitation.invite_token}",
        )

    _set_auth_cookie(response, user.id)
    logger.info(f"User {user.id} registered as {user.role.value}")
    return user


@router.post("/login", response_model=Token)
async def login(
    body: UserLogin,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    """Verify credentials; the token is returned and also set as a cookie."""
    result = await db.execute(
        select(User).where(or_(User.username == body.username, User.email == body.username.lower()))
    )
    user = result.scalar_one_or_none()
    if not user or not verify_password(body.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid username or password.")

    token = _set_auth_cookie(response, user.id)
    return Token(access_token=token)


@router.get("/logout")
async def logout():
    """Clear the auth cookie."""
    response = JSONResponse({"ok": True})
    response.delete_cookie(key=COOKIE_KEY)
    return response
