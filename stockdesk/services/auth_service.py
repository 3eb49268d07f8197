"""
Auth Service - Users, sessions, login lockout and rate limiting
"""
import logging
import secrets
from datetime import datetime, timedelta
from typing import Optional, Tuple

import bcrypt
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from stockdesk.core.config import settings
from stockdesk.core.errors import AppError
from stockdesk.core.timeutils import utcnow, as_utc
from stockdesk.models import User, UserSession, LoginAttempt, RateLimit, UserRole

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"

# ============== Passwords & Tokens ==============

def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash using bcrypt"""
    try:
        return bcrypt.checkpw(
            plain_password.encode('utf-8'),
            hashed_password.encode('utf-8')
        )
    except ValueError:
        # Malformed hash
        return False


def get_password_hash(password: str) -> str:
    """Hash a password using bcrypt"""
    return bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt()).decode('utf-8')


def create_access_token(data: dict, expires_at: datetime) -> str:
    """Create JWT access token"""
    to_encode = data.copy()
    to_encode.update({"exp": expires_at})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict:
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        raise AppError("SESSION_INVALID")


class AuthService:
    """Authentication business logic"""

    # ============== Rate limit & lockout ==============

    @staticmethod
    def check_rate_limit(db: Session, ip: Optional[str]) -> None:
        """Count a login request for the ip; lock the ip past the window limit"""
        if not ip:
            return
        now = utcnow()
        window = timedelta(minutes=settings.RATE_LIMIT_WINDOW_MINUTES)
        record = db.query(RateLimit).filter(RateLimit.ip == ip).with_for_update().first()

        if record is None:
            record = RateLimit(ip=ip, count=1, window_start=now)
            db.add(record)
        elif as_utc(record.window_start) < now - window:
            record.count = 1
            record.window_start = now
        else:
            record.count += 1

        if record.count > settings.RATE_LIMIT_MAX:
            record.locked_until = now + timedelta(minutes=settings.RATE_LIMIT_LOCK_MINUTES)
        db.commit()

        if record.locked_until and as_utc(record.locked_until) > now:
            logger.warning(f"Login rate limit hit for {ip}")
            raise AppError("RATE_LIMIT_EXCEEDED")

    @staticmethod
    def check_login_allowed(db: Session, username: str, ip: Optional[str]) -> None:
        if not ip:
            return
        record = db.query(LoginAttempt).filter(
            LoginAttempt.username == username,
            LoginAttempt.ip == ip
        ).first()
        if record and record.locked_until and as_utc(record.locked_until) > utcnow():
            raise AppError("ACCOUNT_LOCKED")

    @staticmethod
    def record_failed_attempt(db: Session, username: str, ip: Optional[str]) -> None:
        if not ip:
            return
        now = utcnow()
        record = db.query(LoginAttempt).filter(
            LoginAttempt.username == username,
            LoginAttempt.ip == ip
        ).with_for_update().first()
        if record is None:
            record = LoginAttempt(username=username, ip=ip, attempts=0, last_attempt_at=now)
            db.add(record)
        record.attempts += 1
        record.last_attempt_at = now
        if record.attempts >= settings.MAX_LOGIN_ATTEMPTS:
            record.locked_until = now + timedelta(minutes=settings.LOGIN_LOCK_MINUTES)
            logger.warning(f"Locked login for {username} from {ip}")
        db.commit()

    @staticmethod
    def clear_login_attempts(db: Session, username: str, ip: Optional[str]) -> None:
        if not ip:
            return
        db.query(LoginAttempt).filter(
            LoginAttempt.username == username,
            LoginAttempt.ip == ip
        ).delete(synchronize_session=False)

    # ============== Users ==============

    @staticmethod
    def register(db: Session, username: str, password: str, role: str = UserRole.USER.value) -> User:
        username = username.strip()
        if not username:
            raise AppError.validation(username="required")
        if db.query(User.id).filter(User.username == username).first():
            raise AppError("USERNAME_EXISTS")

        user = User(username=username, password_hash=get_password_hash(password), role=role)
        db.add(user)
        db.commit()
        db.refresh(user)
        logger.info(f"Registered user {username}")
        return user

    @staticmethod
    def login(
        db: Session,
        username: str,
        password: str,
        ip: Optional[str] = None,
        user_agent: Optional[str] = None
    ) -> Tuple[str, User, UserSession]:
        """
        Check the rate limit and lockout, verify the password and open a
        session. Unknown user and wrong password fail the same way.
        """
        username = username.strip()
        AuthService.check_rate_limit(db, ip)
        AuthService.check_login_allowed(db, username, ip)

        user = db.query(User).filter(User.username == username).first()
        if not user or not verify_password(password, user.password_hash):
            AuthService.record_failed_attempt(db, username, ip)
            raise AppError("INVALID_CREDENTIALS")

        AuthService.clear_login_attempts(db, username, ip)

        now = utcnow()
        session = UserSession(
            user_id=user.id,
            refresh_token=secrets.token_urlsafe(48),
            user_agent=user_agent,
            expires_at=now + timedelta(seconds=settings.SESSION_TTL_SECONDS),
            last_activity_at=now,
        )
        db.add(session)
        db.commit()
        db.refresh(session)

        token = create_access_token(
            {"sub": str(user.id), "sid": session.refresh_token, "username": user.username},
            expires_at=as_utc(session.expires_at),
        )
        logger.info(f"User {username} logged in")
        return token, user, session

    # ============== Sessions ==============

    @staticmethod
    def resolve_session(db: Session, token: Optional[str]) -> Tuple[User, UserSession]:
        """Validate a token's session, slide its activity and return the user"""
        if not token:
            raise AppError("AUTH_HEADER_MISSING")

        payload = decode_access_token(token)
        session_token = payload.get("sid")
        if not session_token:
            raise AppError("SESSION_INVALID")

        session = db.query(UserSession).filter(UserSession.refresh_token == session_token).first()
        if not session:
            raise AppError("SESSION_INVALID")

        now = utcnow()
        idle_limit = timedelta(minutes=settings.INACTIVITY_LIMIT_MINUTES)
        if as_utc(session.expires_at) <= now or as_utc(session.last_activity_at) + idle_limit <= now:
            db.delete(session)
            db.commit()
            raise AppError("SESSION_INVALID")

        session.last_activity_at = now
        db.commit()
        return session.user, session

    @staticmethod
    def logout(db: Session, session: UserSession) -> None:
        db.delete(session)
        db.commit()

    @staticmethod
    def purge_expired(db: Session) -> dict:
        """Drop expired or idle sessions, stale login attempts and old rate-limit windows"""
        now = utcnow()
        idle_cutoff = now - timedelta(minutes=settings.INACTIVITY_LIMIT_MINUTES)
        sessions = db.query(UserSession).filter(
            (UserSession.expires_at <= now) | (UserSession.last_activity_at <= idle_cutoff)
        ).delete(synchronize_session=False)
        attempts = db.query(LoginAttempt).filter(
            LoginAttempt.last_attempt_at < now - timedelta(seconds=settings.SESSION_TTL_SECONDS)
        ).delete(synchronize_session=False)
        rate_limits = db.query(RateLimit).filter(
            RateLimit.window_start < now - timedelta(days=1)
        ).delete(synchronize_session=False)
        db.commit()
        return {"sessions": sessions, "login_attempts": attempts, "rate_limits": rate_limits}
