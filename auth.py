from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Optional

import bcrypt
from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from models import AuthSession, User
from schemas import PasswordChangeIn, SetupIn

logger = logging.getLogger(__name__)

SESSION_COOKIE = "session"


def _password_bytes(password: str) -> bytes:
    # bcrypt only looks at the first 72 bytes
    return password.encode("utf-8")[:72]


def hash_password(password: str) -> str:
    return bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed_password: str) -> bool:
    try:
        return bcrypt.checkpw(
            _password_bytes(password), hashed_password.encode("utf-8")
        )
    except ValueError:
        return False


class AuthService:
    def __init__(
        self, session: Session, *, max_sessions: int = 5, min_password_length: int = 6
    ) -> None:
        self.session = session
        self.max_sessions = max_sessions
        self.min_password_length = min_password_length

    def has_users(self) -> bool:
        count = self.session.execute(select(func.count(User.id))).scalar_one()
        return (count or 0) > 0

    def _check_password_length(self, password: str) -> None:
        if len(password) < self.min_password_length:
            raise ValueError(
                f"Password must be at least {self.min_password_length} characters"
            )

    def create_user(self, data: SetupIn) -> User:
        self._check_password_length(data.password)
        user = User(
            username=data.username,
            password_hash=hash_password(data.password),
            created_at=datetime.now(),
        )
        self.session.add(user)
        try:
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            raise ValueError("Username already exists") from exc
        self.session.refresh(user)
        logger.info(f"user_created: id={user.id}")
        return user

    def authenticate(self, username: str, password: str) -> Optional[User]:
        user = self.session.scalar(select(User).where(User.username == username))
        if not user or not verify_password(password, user.password_hash):
            logger.info("login_failed")
            return None
        return user

    def start_session(self, user: User) -> str:
        token = str(uuid.uuid4())
        self.session.add(
            AuthSession(token=token, user_id=user.id, created_at=datetime.now())
        )
        self.session.flush()
        self._delete_older_sessions(user.id, self.max_sessions)
        self.session.commit()
        logger.info(f"session_started: user_id={user.id}")
        return token

    def _delete_older_sessions(self, user_id: int, keep: int) -> int:
        newest = (
            select(AuthSession.id)
            .where(AuthSession.user_id == user_id)
            .order_by(AuthSession.created_at.desc(), AuthSession.id.desc())
            .limit(keep)
        )
        result = self.session.execute(
            delete(AuthSession)
            .where(AuthSession.user_id == user_id, AuthSession.id.not_in(newest))
            .execution_options(synchronize_session=False)
        )
        if result.rowcount:
            logger.info(
                f"sessions_pruned: user_id={user_id} removed={result.rowcount}"
            )
        return result.rowcount or 0

    def prune_sessions(self, user_id: int, keep: Optional[int] = None) -> int:
        keep = self.max_sessions if keep is None else keep
        removed = self._delete_older_sessions(user_id, keep)
        self.session.commit()
        return removed

    def user_for_token(self, token: Optional[str]) -> Optional[User]:
        if not token:
            return None
        stmt = (
            select(User)
            .join(AuthSession, AuthSession.user_id == User.id)
            .where(AuthSession.token == token)
        )
        return self.session.scalar(stmt)

    def session_count(self, user_id: int) -> int:
        stmt = select(func.count(AuthSession.id)).where(
            AuthSession.user_id == user_id
        )
        return self.session.execute(stmt).scalar_one() or 0

    def end_session(self, token: str) -> None:
        self.session.execute(delete(AuthSession).where(AuthSession.token == token))
        self.session.commit()

    def end_all_sessions(self, user_id: int) -> None:
        result = self.session.execute(
            delete(AuthSession).where(AuthSession.user_id == user_id)
        )
        self.session.commit()
        logger.info(f"sessions_cleared: user_id={user_id} removed={result.rowcount}")

    def change_password(self, user: User, data: PasswordChangeIn) -> None:
        self._check_password_length(data.new_password)
        if not verify_password(data.current_password, user.password_hash):
            raise ValueError("Current password is incorrect")
        user.password_hash = hash_password(data.new_password)
        self.session.commit()
        logger.info(f"password_changed: user_id={user.id}")
