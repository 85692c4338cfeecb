"""
Business logic for user authentication and account management
"""

import logging
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from allevapp.errors import AuthenticationError, ConflictError
from allevapp.models import User
from allevapp.utils.security import get_password_hash, verify_password

logger = logging.getLogger(__name__)

ACTION_LOGIN = "USER_LOGIN"


def get_user_by_username(db: Session, username: str) -> Optional[User]:
    return db.query(User).filter(func.lower(User.username) == username.strip().lower()).first()


def get_user_by_id(db: Session, user_id: int) -> Optional[User]:
    return db.query(User).filter(User.id == user_id).first()


def authenticate(db: Session, username: str, password: str) -> User:
    """
    Return the first active user whose username matches (case-insensitive)
    and whose password verifies against the stored hash.

    Args:
        db: Database session
        username: Username as typed by the user
        password: Plain password

    Returns:
        User: The authenticated user

    Raises:
        AuthenticationError: reason ``user_not_found`` when no active user has
            that username, ``wrong_password`` otherwise
    """
    logger.info(f"Login attempt for username '{username}'", extra={"action": ACTION_LOGIN})

    candidates = (
        db.query(User)
        .filter(
            User.active == True,
            func.lower(User.username) == username.strip().lower()
        )
        .order_by(User.id)
        .all()
    )

    if not candidates:
        logger.warning(f"Login failed: user not found ({username})", extra={"action": ACTION_LOGIN})
        raise AuthenticationError("User not found", AuthenticationError.USER_NOT_FOUND)

    for user in candidates:
        if verify_password(password, user.hashed_password):
            logger.info(f"User {user.id} logged in", extra={"action": ACTION_LOGIN})
            return user

    logger.warning(f"Login failed: wrong password for {username}", extra={"action": ACTION_LOGIN})
    raise AuthenticationError("Wrong password", AuthenticationError.WRONG_PASSWORD)


def create_user(
    db: Session,
    full_name: str,
    username: str,
    password: str,
    role: str = "technician",
    email: Optional[str] = None,
    active: bool = True
) -> User:
    """Create a user with a hashed password. Usernames are unique ignoring case."""
    if get_user_by_username(db, username):
        raise ConflictError(f"Username '{username}' is already taken")

    user = User(
        full_name=full_name,
        username=username.strip(),
        email=email,
        hashed_password=get_password_hash(password),
        role=role,
        active=active
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info(f"Created user {user.id} ({user.username}) with role {role}")
    return user


def change_password(db: Session, user: User, current_password: str, new_password: str) -> None:
    if not verify_password(current_password, user.hashed_password):
        raise AuthenticationError("Wrong password", AuthenticationError.WRONG_PASSWORD)
    user.hashed_password = get_password_hash(new_password)
    db.commit()
    logger.info(f"User {user.id} changed password", extra={"action": "PASSWORD_CHANGE"})


def reset_password(db: Session, user: User, new_password: str) -> None:
    user.hashed_password = get_password_hash(new_password)
    db.commit()
    logger.info(f"Password reset for user {user.id}", extra={"action": "PASSWORD_RESET"})
