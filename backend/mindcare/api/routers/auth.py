from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from mindcare.db import get_db
from mindcare.logging import get_logger
from mindcare.models import User
from mindcare.schemas import (
    UserRegister, TherapistRegister, LoginRequest, Token, RegisterResponse, AccountPublic,
)
from mindcare.services.accounts import EmailTaken, account_dict, create_account
from mindcare.services.auth_service import get_current_user, token_for, verify_password

router = APIRouter(prefix="/auth", tags=["auth"])
logger = get_logger(__name__)


async def get_user_by_email(db: AsyncSession, email: str):
    q = select(User).where(func.lower(User.email) == email.lower())
    res = await db.execute(q)
    return res.scalar_one_or_none()


async def _register(db: AsyncSession, role: str, payload, profile=None) -> RegisterResponse:
    try:
        user = await create_account(db, role, payload.model_dump(), profile)
    except EmailTaken:
        raise HTTPException(status_code=400, detail="Email already registered.")
    logger.info("account_registered", user_id=user.id, role=role)
    return RegisterResponse(message="Registration successful", user=AccountPublic(**account_dict(user)))


@router.post("/register/user", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
async def register_user(user_in: UserRegister, db: AsyncSession = Depends(get_db)):
    return await _register(db, "user", user_in)


@router.post("/register/therapist", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
async def register_therapist(therapist_in: TherapistRegister, db: AsyncSession = Depends(get_db)):
    """
    New therapists start unverified and are hidden from search until an
    admin verifies them.
    """
    profile = therapist_in.model_dump(
        include={"license_number", "specializations", "languages", "education", "experience", "bio", "hourly_rate"}
    )
    return await _register(db, "therapist", therapist_in, profile)


async def _authenticate(db: AsyncSession, email: str, password: str, user_type: str = None) -> User:
    user = await get_user_by_email(db, email)
    if not user or not user.password_hash or not verify_password(password, user.password_hash):
        logger.info("login_failed", reason="bad_credentials")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if user_type is not None and user.role != user_type:
        logger.info("login_failed", reason="role_mismatch", user_id=user.id)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not user.is_active:
        logger.info("login_failed", reason="deactivated", user_id=user.id)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is deactivated")

    user.last_login = datetime.now(timezone.utc)
    await db.commit()
    logger.info("login_succeeded", user_id=user.id, role=user.role)
    return user


@router.post("/login", response_model=Token)
async def login(req: LoginRequest, db: AsyncSession = Depends(get_db)):
    user = await _authenticate(db, req.email, req.password, req.user_type)
    return Token(access_token=token_for(user), user=AccountPublic(**account_dict(user)))


@router.post("/token", response_model=Token)
async def login_for_access_token(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: AsyncSession = Depends(get_db)
):
    # OAuth2 password form, used by the interactive docs
    user = await _authenticate(db, form_data.username, form_data.password)
    return Token(access_token=token_for(user), user=AccountPublic(**account_dict(user)))


@router.get("/me", response_model=AccountPublic)
async def read_me(current_user: User = Depends(get_current_user)):
    return account_dict(current_user)
