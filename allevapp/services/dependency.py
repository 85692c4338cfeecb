"""
Per-request session built from the bearer token.

Route handlers take a ``Session`` via ``Depends(get_session)`` instead of
reading the current user ad hoc, and use its accessors for role and farm
scoping.
"""
from typing import Optional, Set

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session as DBSession

from allevapp.database import get_db
from allevapp.errors import AuthenticationError, PermissionDeniedError, NotFoundError
from allevapp.models import User
from allevapp.services.auth import get_user_by_username
from allevapp.utils.security import verify_token

security = HTTPBearer(auto_error=False)

ROLE_ADMIN = "admin"
ROLE_MANAGER = "manager"
ROLE_TECHNICIAN = "technician"
ROLES = (ROLE_ADMIN, ROLE_MANAGER, ROLE_TECHNICIAN)


class Session:
    """The authenticated user of the current request"""

    def __init__(self, user: User):
        self._user = user
        self._farm_ids: Optional[Set[int]] = None
        if user.role == ROLE_TECHNICIAN:
            self._farm_ids = {farm.id for farm in user.assigned_farms}

    @property
    def user(self) -> User:
        return self._user

    @property
    def user_id(self) -> int:
        return self._user.id

    @property
    def role(self) -> str:
        return self._user.role

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    @property
    def is_manager(self) -> bool:
        return self.role == ROLE_MANAGER

    @property
    def is_technician(self) -> bool:
        return self.role == ROLE_TECHNICIAN

    @property
    def can_manage(self) -> bool:
        return self.is_admin or self.is_manager

    @property
    def farm_ids(self) -> Optional[Set[int]]:
        """Farms visible to this user; None means every farm"""
        return self._farm_ids

    def can_access_farm(self, farm_id: Optional[int]) -> bool:
        if self._farm_ids is None:
            return True
        return farm_id is not None and farm_id in self._farm_ids

    def scope(self, query, farm_column):
        """Restrict a query to the farms visible to this user"""
        if self._farm_ids is None:
            return query
        return query.filter(farm_column.in_(self._farm_ids))

    def require_admin(self) -> None:
        if not self.is_admin:
            raise PermissionDeniedError("Admin access required")

    def require_manager(self) -> None:
        if not self.can_manage:
            raise PermissionDeniedError("Admin or manager access required")

    def require_farm(self, farm_id: Optional[int]) -> None:
        # Hidden farms look the same as missing ones
        if not self.can_access_farm(farm_id):
            raise NotFoundError("Farm not found")


def get_session(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: DBSession = Depends(get_db)
) -> Session:
    """Resolve the bearer token into a Session"""
    if credentials is None:
        raise AuthenticationError("Not authenticated", AuthenticationError.INVALID_TOKEN)

    username = verify_token(credentials.credentials)
    if not username:
        raise AuthenticationError("Invalid or expired token", AuthenticationError.INVALID_TOKEN)

    user = get_user_by_username(db, username)
    if not user:
        raise AuthenticationError("User not found", AuthenticationError.USER_NOT_FOUND)
    if not user.active:
        raise AuthenticationError("User is disabled", AuthenticationError.INACTIVE_USER)

    return Session(user)


def require_admin(session: Session = Depends(get_session)) -> Session:
    session.require_admin()
    return session


def require_manager(session: Session = Depends(get_session)) -> Session:
    session.require_manager()
    return session
