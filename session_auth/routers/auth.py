from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from typing import Optional
from session_auth import config
from session_auth.utils.database import get_db
from session_auth.utils.errors import INTERNAL_ERROR
from session_auth.models.user import User
from session_auth.services import session_service
from session_auth.services.auth_service import (
    hash_password,
    verify_password,
    hash_secret_answer,
)
from session_auth.services.captcha_service import CaptchaServiceError, captcha_enabled, verify_recaptcha
from session_auth.services.mail_service import send_login_notification
import logging

router = APIRouter(prefix="/api", tags=["auth"])

logger = logging.getLogger("session_auth.auth")

INVALID_CREDENTIALS = "Invalid email or password."
EMAIL_TAKEN = "This email address is already registered."
PASSWORD_MIN_LENGTH = 6
# bcrypt ignores (or rejects) anything past 72 bytes
PASSWORD_MAX_BYTES = 72
# matches User.secret_question
SECRET_QUESTION_MAX_LENGTH = 255


# ---------------------- HELPERS ----------------------
def validate_password_length(password: str) -> str:
    """Password must be 6+ characters and fit in a bcrypt input."""
    if len(password) < PASSWORD_MIN_LENGTH:
        raise ValueError(f"Password must be at least {PASSWORD_MIN_LENGTH} characters long.")
    if len(password.encode("utf-8")) > PASSWORD_MAX_BYTES:
        raise ValueError(f"Password must be at most {PASSWORD_MAX_BYTES} bytes long.")
    return password


# ---------------------- MODELS ----------------------
class SignupIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: EmailStr
    password: str
    secret_question: str = Field(alias="secretQuestion")
    secret_answer: str = Field(alias="secretAnswer")

    @field_validator("password")
    @classmethod
    def _password(cls, v: str) -> str:
        return validate_password_length(v)

    @field_validator("secret_question")
    @classmethod
    def _question(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Please choose a secret question.")
        if len(v) > SECRET_QUESTION_MAX_LENGTH:
            raise ValueError(f"Secret question must be at most {SECRET_QUESTION_MAX_LENGTH} characters long.")
        return v

    @field_validator("secret_answer")
    @classmethod
    def _answer(cls, v: str) -> str:
        if not v:
            raise ValueError("Please enter the answer to your secret question.")
        if len(v.encode("utf-8")) > PASSWORD_MAX_BYTES:
            raise ValueError(f"Secret answer must be at most {PASSWORD_MAX_BYTES} bytes long.")
        return v


class LoginIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: EmailStr
    password: str
    recaptcha_token: Optional[str] = Field(default=None, alias="recaptchaToken")

    @field_validator("password")
    @classmethod
    def _password(cls, v: str) -> str:
        if not v:
            raise ValueError("Password is required.")
        return v


# ---------------------- ROUTES ----------------------
@router.post("/signup", status_code=status.HTTP_201_CREATED)
async def signup(payload: SignupIn, db: AsyncSession = Depends(get_db)):
    logger.info(f"POST /signup received for email: {payload.email}")

    try:
        # Check existing email
        existing = await db.execute(select(User).filter_by(email=payload.email))
        if existing.scalars().first():
            raise HTTPException(status_code=400, detail=EMAIL_TAKEN)

        user = User(
            email=payload.email,
            password_hash=hash_password(payload.password),
            secret_question=payload.secret_question,
            secret_answer_hash=hash_secret_answer(payload.secret_answer),
        )
        db.add(user)
        try:
            await db.commit()
        except IntegrityError:
            # lost a race with a concurrent signup for the same email
            await db.rollback()
            raise HTTPException(status_code=400, detail=EMAIL_TAKEN)
    except HTTPException:
        raise
    except Exception:
        logger.exception("Signup error")
        raise HTTPException(status_code=500, detail=INTERNAL_ERROR)

    logger.info(f"User registered successfully: {payload.email}")
    return {"message": "Registration complete.", "userId": str(user.id)}


@router.post("/login")
async def login(payload: LoginIn, response: Response, db: AsyncSession = Depends(get_db)):
    logger.info(f"POST /login received for email: {payload.email}")

    if captcha_enabled():
        if not payload.recaptcha_token:
            raise HTTPException(status_code=400, detail="reCAPTCHA verification is required.")
        try:
            captcha_ok = await verify_recaptcha(payload.recaptcha_token)
        except CaptchaServiceError:
            logger.exception("reCAPTCHA service unavailable")
            raise HTTPException(status_code=500, detail=INTERNAL_ERROR)
        if not captcha_ok:
            raise HTTPException(status_code=400, detail="reCAPTCHA verification failed.")

    try:
        q = await db.execute(select(User).filter_by(email=payload.email))
        user = q.scalars().first()
        # Same answer for unknown email and wrong password
        if not user or not verify_password(payload.password, user.password_hash):
            logger.info(f"Login rejected for email: {payload.email}")
            raise HTTPException(status_code=401, detail=INVALID_CREDENTIALS)

        await session_service.issue(db, response, user.id, user.email)
    except HTTPException:
        raise
    except Exception:
        logger.exception("Login error")
        raise HTTPException(status_code=500, detail=INTERNAL_ERROR)

    try:
        await send_login_notification(user.email)
    except Exception as e:
        # the login itself already succeeded
        logger.warning(f"Failed to send login notification to {user.email}: {e}")

    logger.info(f"User logged in successfully: {payload.email}")
    return {"message": "Login successful."}


@router.post("/logout")
async def logout(request: Request, response: Response, db: AsyncSession = Depends(get_db)):
    try:
        await session_service.revoke(request, response, db)
    except Exception:
        logger.exception("Logout error")
        failed = JSONResponse({"error": "Logout failed."}, status_code=500)
        failed.delete_cookie(config.SESSION_COOKIE_NAME, **session_service.cookie_settings())
        return failed
    return {"message": "Logged out."}


@router.get("/session")
async def get_session(request: Request, db: AsyncSession = Depends(get_db)):
    try:
        session = await session_service.verify(request, db)
    except Exception:
        logger.exception("Session check error")
        raise HTTPException(status_code=500, detail=INTERNAL_ERROR)

    if session is None:
        return JSONResponse({"authenticated": False}, status_code=status.HTTP_401_UNAUTHORIZED)

    return {
        "authenticated": True,
        "user": {"userId": session.user_id, "email": session.email},
    }
