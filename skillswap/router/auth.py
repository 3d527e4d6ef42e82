import logging
from datetime import datetime
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from ..core.config import get_settings
from ..core.errors import Conflict
from ..db import get_session
from ..models.user import User, UserCreate, UserLoginInput, UserRead
from ..utils.auth import create_user_token, get_current_user, get_password_hash, verify_password
from ..utils.utils import success

logger = logging.getLogger(__name__)

router = APIRouter()
settings = get_settings()


async def authenticate(session: AsyncSession, email: str, password: str) -> User:
    result = await session.execute(select(User).where(User.email == email.lower()))
    user = result.scalar_one_or_none()
    if not user or not verify_password(password, user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Account is deactivated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    user.last_login_at = datetime.utcnow()
    await session.commit()
    return user


@router.post("/signup", status_code=status.HTTP_201_CREATED)
async def signup(user_in: UserCreate, session: AsyncSession = Depends(get_session)):
    email = user_in.email.lower()
    existing_user = await session.execute(select(User).where(User.email == email))
    if existing_user.scalar_one_or_none():
        raise Conflict("Email is already registered")

    user_count = await session.scalar(select(func.count()).select_from(User))
    is_admin = user_count == 0 or (
        settings.ADMIN_EMAIL is not None and email == settings.ADMIN_EMAIL.lower()
    )

    db_user = User(
        name=user_in.name.strip(),
        email=email,
        hashed_password=get_password_hash(user_in.password),
        skills_offered=user_in.skills_offered,
        skills_wanted=user_in.skills_wanted,
        location=user_in.location.strip(),
        availability=user_in.availability,
        bio=user_in.bio.strip(),
        preferred_learning_mode=user_in.preferred_learning_mode,
        languages=user_in.languages,
        role="admin" if is_admin else "user",
        is_email_verified=is_admin,
    )
    session.add(db_user)
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise Conflict("Email is already registered")

    logger.info("user %s signed up as %s", db_user.id, db_user.role)
    return success(
        "User registered successfully",
        token=create_user_token(db_user),
        user=UserRead.model_validate(db_user),
    )


@router.post("/login")
async def login(user_input: UserLoginInput, session: AsyncSession = Depends(get_session)):
    user = await authenticate(session, user_input.email, user_input.password)
    return success(
        "Login successful",
        token=create_user_token(user),
        user=UserRead.model_validate(user),
    )


@router.post("/token")
async def login_for_access_token(
    form_data: OAuth2PasswordRequestForm = Depends(),
    session: AsyncSession = Depends(get_session),
):
    user = await authenticate(session, form_data.username, form_data.password)
    return {"access_token": create_user_token(user), "token_type": "bearer"}


@router.get("/me")
async def me(current_user: User = Depends(get_current_user)):
    return success(user=UserRead.model_validate(current_user))


@router.post("/refresh")
async def refresh(current_user: User = Depends(get_current_user)):
    return success("Token refreshed", token=create_user_token(current_user))


@router.post("/logout")
async def logout(current_user: User = Depends(get_current_user)):
    return success("Logged out successfully")
