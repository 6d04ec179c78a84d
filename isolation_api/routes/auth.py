"""Auth routes — local accounts with bcrypt passwords and JWT tokens."""

import logging

from fastapi import APIRouter, HTTPException, Depends
from sqlalchemy.orm import Session

from isolation_api.auth import hash_password, verify_password, create_access_token, get_current_user
from isolation_api.database import get_db
from isolation_api.models import AuthResponse, SignInRequest, SignUpRequest, UserResponse
from isolation_api.models_db import User

logger = logging.getLogger(__name__)

router = APIRouter()


def user_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        email=user.email,
        name=user.name,
        subscription_tier=user.subscription_tier,
        calculations_used=user.calculations_used,
    )


@router.post("/auth/signup", response_model=AuthResponse)
async def signup(body: SignUpRequest, db: Session = Depends(get_db)):
    """Create a new user account."""
    email = body.email.strip().lower()
    existing = db.query(User).filter(User.email == email).first()
    if existing:
        raise HTTPException(status_code=409, detail="An account with this email already exists")

    user = User(
        email=email,
        password_hash=hash_password(body.password),
        name=body.name,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Created account %s", user.id)

    return AuthResponse(user=user_response(user), token=create_access_token(user.id))


@router.post("/auth/login", response_model=AuthResponse)
async def login(body: SignInRequest, db: Session = Depends(get_db)):
    """Login with email and password."""
    user = db.query(User).filter(User.email == body.email.strip().lower()).first()
    if not user or not verify_password(body.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid email or password")

    return AuthResponse(user=user_response(user), token=create_access_token(user.id))


@router.get("/auth/me", response_model=UserResponse)
async def get_me(current_user: User = Depends(get_current_user)):
    """Get current authenticated user."""
    return user_response(current_user)
