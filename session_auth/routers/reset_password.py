# session_auth/routers/reset_password.py
import logging
from typing import Literal

from fastapi import APIRouter, Body, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, EmailStr, Field, ValidationError, field_validator
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from session_auth.models.user import User
from session_auth.routers.auth import validate_password_length
from session_auth.services import session_service
from session_auth.services.auth_service import hash_password, verify_secret_answer
from session_auth.utils.database import get_db
from session_auth.utils.errors import INTERNAL_ERROR, first_error_message

router = APIRouter(prefix="/api", tags=["reset-password"])
logger = logging.getLogger("session_auth.reset_password")

USER_NOT_FOUND = "User not found."


class GetQuestionIn(BaseModel):
    step: Literal["get-question"]
    email: EmailStr


class ResetPasswordIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    step: Literal["reset-password"]
    email: EmailStr
    secret_answer: str = Field(alias="secretAnswer")
    new_password: str = Field(alias="newPassword")

    @field_validator("secret_answer")
    @classmethod
    def _answer(cls, v: str) -> str:
        if not v:
            raise ValueError("Please enter the answer to your secret question.")
        return v

    @field_validator("new_password")
    @classmethod
    def _password(cls, v: str) -> str:
        return validate_password_length(v)


async def _find_user(db: AsyncSession, email: str):
    q = await db.execute(select(User).filter_by(email=email))
    return q.scalars().first()


async def get_question(payload: GetQuestionIn, db: AsyncSession) -> dict:
    user = await _find_user(db, payload.email)
    if not user:
        raise HTTPException(status_code=404, detail=USER_NOT_FOUND)
    return {"secretQuestion": user.secret_question}


async def reset_password(payload: ResetPasswordIn, db: AsyncSession) -> dict:
    user = await _find_user(db, payload.email)
    if not user:
        raise HTTPException(status_code=404, detail=USER_NOT_FOUND)

    if not verify_secret_answer(payload.secret_answer, user.secret_answer_hash):
        logger.info(f"Wrong secret answer for email: {payload.email}")
        raise HTTPException(status_code=401, detail="The answer to the secret question is incorrect.")

    user.password_hash = hash_password(payload.new_password)
    # Signs the user out everywhere
    await session_service.revoke_all(db, user.id)
    await db.commit()

    logger.info(f"Password reset for email: {payload.email}")
    return {"message": "Your password has been reset."}


STEPS = {
    "get-question": (GetQuestionIn, get_question),
    "reset-password": (ResetPasswordIn, reset_password),
}


@router.post("/reset-password")
async def reset_password_endpoint(body: dict = Body(...), db: AsyncSession = Depends(get_db)):
    """
    Two-step reset, picked by the "step" field:
    - get-question   → returns the stored secret question
    - reset-password → checks the answer, sets the new password, revokes all sessions
    """
    step_name = body.get("step")
    step = STEPS.get(step_name) if isinstance(step_name, str) else None
    if step is None:
        raise HTTPException(status_code=400, detail="Invalid request.")
    model, handler = step

    try:
        payload = model.model_validate(body)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=first_error_message(e.errors()))

    logger.info(f"POST /reset-password step={step_name} for email: {payload.email}")
    try:
        return await handler(payload, db)
    except HTTPException:
        raise
    except Exception:
        logger.exception("Reset password error")
        raise HTTPException(status_code=500, detail=INTERNAL_ERROR)
