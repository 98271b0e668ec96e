from datetime import timedelta
import logging
import os

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.db import GetDb
from app.modules.auth.deps import NowUtc, RequireAuthenticated, UserContext, _require_env
from app.modules.auth.models import RefreshToken, User
from app.modules.auth.schemas import (
    CredentialsRequest,
    ProfileOut,
    RefreshRequest,
    SessionResponse,
    SessionUserOut,
    SignUpResponse,
)
from app.modules.auth.service import (
    CreateAccessToken,
    CreateRefreshToken,
    HashPassword,
    HashRefreshToken,
    NormalizeEmail,
    ValidateEmail,
    VerifyPassword,
    VerifyRefreshToken,
)
from app.modules.realtime.hub import hub

router = APIRouter(prefix="/api/auth", tags=["auth"])
logger = logging.getLogger("app.auth")

PROFILES_TABLE = "profiles"
DEFAULT_PASSWORD_MIN_LENGTH = 6


def _password_min_length() -> int:
    raw = os.getenv("AUTH_PASSWORD_MIN_LENGTH", "").strip()
    if not raw:
        return DEFAULT_PASSWORD_MIN_LENGTH
    try:
        return int(raw)
    except ValueError as exc:
        raise RuntimeError("AUTH_PASSWORD_MIN_LENGTH must be an integer") from exc


def _BuildProfileOut(user: User) -> ProfileOut:
    return ProfileOut(Id=user.Id, Email=user.Email, CreatedAt=user.CreatedAt)


def _IssueSession(db: Session, user: User) -> SessionResponse:
    access_token, expires_in = CreateAccessToken(user.Id, user.Email)
    refresh_token = CreateRefreshToken()
    refresh_ttl_days = int(_require_env("JWT_REFRESH_TTL_DAYS"))
    db.add(
        RefreshToken(
            UserId=user.Id,
            TokenHash=HashRefreshToken(refresh_token),
            ExpiresAt=NowUtc() + timedelta(days=refresh_ttl_days),
        )
    )
    db.commit()
    return SessionResponse(
        AccessToken=access_token,
        RefreshToken=refresh_token,
        ExpiresIn=expires_in,
        User=SessionUserOut(Id=user.Id, Email=user.Email),
    )


@router.post("/signup", response_model=SignUpResponse, status_code=status.HTTP_201_CREATED)
def SignUp(payload: CredentialsRequest, db: Session = Depends(GetDb)) -> SignUpResponse:
    try:
        email = ValidateEmail(payload.Email)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    min_length = _password_min_length()
    if len(payload.Password) < min_length:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Password should be at least {min_length} characters",
        )

    existing = db.query(User).filter(User.Email == email).first()
    if existing:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="User already registered")

    record = User(Email=email, PasswordHash=HashPassword(payload.Password))
    db.add(record)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="User already registered")
    db.refresh(record)

    logger.info("user registered", extra={"user_id": record.Id})
    hub.PublishChange(PROFILES_TABLE, "INSERT", new=_BuildProfileOut(record).model_dump(mode="json"))

    return SignUpResponse(
        Message="Account created",
        User=SessionUserOut(Id=record.Id, Email=record.Email),
    )


@router.post("/signin", response_model=SessionResponse)
def SignIn(payload: CredentialsRequest, db: Session = Depends(GetDb)) -> SessionResponse:
    email = NormalizeEmail(payload.Email)
    user = db.query(User).filter(User.Email == email).first()
    if not user or not VerifyPassword(payload.Password, user.PasswordHash):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid login credentials")
    return _IssueSession(db, user)


@router.post("/refresh", response_model=SessionResponse)
def Refresh(payload: RefreshRequest, db: Session = Depends(GetDb)) -> SessionResponse:
    now = NowUtc()
    tokens = (
        db.query(RefreshToken)
        .filter(RefreshToken.RevokedAt.is_(None), RefreshToken.ExpiresAt > now)
        .all()
    )
    matched = None
    for token in tokens:
        if VerifyRefreshToken(payload.RefreshToken, token.TokenHash):
            matched = token
            break

    if not matched:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid refresh token")

    user = db.query(User).filter(User.Id == matched.UserId).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")

    matched.RevokedAt = now
    db.add(matched)
    return _IssueSession(db, user)


@router.post("/signout")
def SignOut(
    payload: RefreshRequest,
    user: UserContext = Depends(RequireAuthenticated),
    db: Session = Depends(GetDb),
) -> dict:
    tokens = db.query(RefreshToken).filter(RefreshToken.UserId == user.Id, RefreshToken.RevokedAt.is_(None)).all()
    for token in tokens:
        if VerifyRefreshToken(payload.RefreshToken, token.TokenHash):
            token.RevokedAt = NowUtc()
            db.add(token)
            db.commit()
            return {"status": "ok"}
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Refresh token not found")


@router.get("/me", response_model=SessionUserOut)
def CurrentUser(user: UserContext = Depends(RequireAuthenticated)) -> SessionUserOut:
    return SessionUserOut(Id=user.Id, Email=user.Email)


@router.get("/users", response_model=list[ProfileOut])
def ListUsers(
    limit: int | None = Query(default=None, ge=1, le=500),
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireAuthenticated),
) -> list[ProfileOut]:
    query = db.query(User).order_by(User.CreatedAt.asc(), User.Id.asc())
    if limit:
        query = query.limit(limit)
    return [_BuildProfileOut(entry) for entry in query.all()]
