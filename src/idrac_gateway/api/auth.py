from __future__ import annotations

import logging
from pathlib import Path

from fastapi import APIRouter, HTTPException, Request, Response
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool

from idrac_gateway.api.models import ApiResponse, MessageData, SessionInfo, ok
from idrac_gateway.auth import SessionAuthority
from idrac_gateway.db.users import create_first_user, has_users, verify_user
from idrac_gateway.passwords import MAX_PASSWORD_BYTES

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])

MIN_PASSWORD_LENGTH = 8


class LoginRequest(BaseModel):
    username: str
    password: str


class RegisterRequest(BaseModel):
    username: str
    password: str
    confirm_password: str


def _db_path(request: Request) -> Path:
    db_path = getattr(request.app.state, "db_path", None)
    if db_path is None:
        raise HTTPException(status_code=500, detail="DB not initialized")
    return db_path


def _sessions(request: Request) -> SessionAuthority:
    sessions = getattr(request.app.state, "sessions", None)
    if sessions is None:
        raise HTTPException(status_code=500, detail="Session authority not initialized")
    return sessions


@router.get("/session", response_model=ApiResponse[SessionInfo])
async def session_info(request: Request) -> ApiResponse[SessionInfo]:
    db_path = _db_path(request)
    authenticated = _sessions(request).user_id_from_request(request) is not None
    registration_open = not await run_in_threadpool(has_users, db_path)
    return ok(SessionInfo(authenticated=authenticated, registration_open=registration_open))


@router.post("/register", response_model=ApiResponse[MessageData])
async def register(
    request: Request, payload: RegisterRequest, response: Response
) -> ApiResponse[MessageData]:
    db_path = _db_path(request)
    sessions = _sessions(request)

    if await run_in_threadpool(has_users, db_path):
        raise HTTPException(
            status_code=403, detail="Registration is closed. An account already exists."
        )

    if not payload.username.strip() or not payload.password:
        raise HTTPException(status_code=400, detail="Username and password are required")
    if payload.password != payload.confirm_password:
        raise HTTPException(status_code=400, detail="Passwords do not match")
    if len(payload.password) < MIN_PASSWORD_LENGTH:
        raise HTTPException(
            status_code=400,
            detail=f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
        )
    if len(payload.password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise HTTPException(
            status_code=400, detail=f"Password must be at most {MAX_PASSWORD_BYTES} bytes"
        )

    # The emptiness check is repeated inside the insert transaction; a racing
    # registration surfaces as RegistrationClosedError (403).
    user_id = await run_in_threadpool(
        create_first_user, db_path, username=payload.username, password=payload.password
    )

    sessions.attach(response, user_id)
    logger.info("New user registered and logged in: %s", payload.username)
    return ok(MessageData(message="Account created successfully"))


@router.post("/login", response_model=ApiResponse[MessageData])
async def login(
    request: Request, payload: LoginRequest, response: Response
) -> ApiResponse[MessageData]:
    db_path = _db_path(request)
    sessions = _sessions(request)

    if not payload.username.strip() or not payload.password:
        raise HTTPException(status_code=400, detail="Username and password are required")

    user = await run_in_threadpool(
        verify_user, db_path, username=payload.username, password=payload.password
    )
    if user is None:
        raise HTTPException(status_code=401, detail="Invalid username or password")

    sessions.attach(response, user.id)
    logger.info("User logged in: %s", user.username)
    return ok(MessageData(message="Login successful"))


@router.post("/logout", response_model=ApiResponse[MessageData])
async def logout(request: Request, response: Response) -> ApiResponse[MessageData]:
    # Advisory only: the client drops the cookie, the token itself stays valid until expiry.
    _sessions(request).revoke(response)
    logger.info("User logged out")
    return ok(MessageData(message="Logged out successfully"))
