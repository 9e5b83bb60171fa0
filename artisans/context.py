"""Per-request identity handed explicitly to every service call."""

from dataclasses import dataclass
from typing import Optional

from artisans.errors import NotAuthenticated, PermissionDenied
from artisans.models.user import User, UserRole


@dataclass(frozen=True)
class RequestContext:
    user: Optional[User] = None

    @property
    def user_id(self) -> int:
        return self.require_user().id

    @property
    def is_admin(self) -> bool:
        return self.user is not None and self.user.role == UserRole.ADMIN

    def require_user(self) -> User:
        if self.user is None:
            raise NotAuthenticated()
        return self.user

    def require_admin(self) -> User:
        user = self.require_user()
        if user.role != UserRole.ADMIN:
            raise PermissionDenied("Admin access required.")
        return user

    def require_role(self, *roles: UserRole) -> User:
        user = self.require_user()
        if user.role not in roles and user.role != UserRole.ADMIN:
            raise PermissionDenied(
                f"This action requires one of: {', '.join(r.value for r in roles)}."
            )
        return user

