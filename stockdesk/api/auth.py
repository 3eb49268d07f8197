"""
Authentication API - Register, Login, Logout, Session
"""
from fastapi import APIRouter, Depends, Request
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session
from typing import Optional

from stockdesk.core import get_db
from stockdesk.core.timeutils import as_utc
from stockdesk.models import User, UserSession
from stockdesk.schemas.auth import LoginRequest, RegisterRequest, Token, UserInfo
from stockdesk.services import AuthService

router = APIRouter(prefix="/auth", tags=["auth"])

# OAuth2 scheme
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


# ============== Dependencies ==============

async def get_current_session(
    token: Optional[str] = Depends(oauth2_scheme),
    db: Session = Depends(get_db)
) -> UserSession:
    """Session behind the bearer token; slides its inactivity window"""
    _, session = AuthService.resolve_session(db, token)
    return session


async def get_current_user(
    session: UserSession = Depends(get_current_session)
) -> User:
    """Require an authenticated user"""
    return session.user


def _user_dict(user: User) -> dict:
    return {"id": str(user.id), "username": user.username, "role": user.role}


# ============== API Endpoints ==============

@router.post("/register", status_code=201)
async def register(data: RegisterRequest, db: Session = Depends(get_db)):
    user = AuthService.register(db, data.username, data.password)
    return _user_dict(user)


@router.post("/login", response_model=Token)
async def login(data: LoginRequest, request: Request, db: Session = Depends(get_db)):
    """
    Login with username and password, returns JWT token bound to a session
    """
    ip = request.client.host if request.client else None
    token, user, _ = AuthService.login(
        db, data.username, data.password,
        ip=ip,
        user_agent=request.headers.get("user-agent")
    )
    return {"access_token": token, "token_type": "bearer", "user": _user_dict(user)}


@router.post("/logout")
async def logout(session: UserSession = Depends(get_current_session), db: Session = Depends(get_db)):
    AuthService.logout(db, session)
    return {"ok": True}


@router.get("/me", response_model=UserInfo)
async def get_me(session: UserSession = Depends(get_current_session)):
    """Get current authenticated user info"""
    user = session.user
    expires_at = as_utc(session.expires_at)
    return UserInfo(
        id=str(user.id),
        username=user.username,
        role=user.role,
        session_expires_at=expires_at.isoformat() if expires_at else None,
    )
