# telecare/routers/auth.py
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.ext.asyncio import AsyncSession

from telecare.db.sql import get_session
from telecare.dependencies import get_current_user
from telecare.modules.users.models import User
from telecare.modules.users.schemas import Account, LoginRequest, LoginResponse, RegisterRequest
from telecare.modules.users.service import (
    EmailAlreadyExists,
    InvalidCredentials,
    login_user,
    register_user,
    to_account,
)

router = APIRouter(tags=["auth"])


@router.post(
    "/auth/register",
    response_model=Account,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new patient or doctor account",
    responses={
        201: {"description": "User created"},
        409: {"description": "Email already registered"},
    },
)
async def auth_register(
    payload: RegisterRequest,
    session: AsyncSession = Depends(get_session),
):
    """
    Register a patient (default) or a doctor.

    Notes:
    - Email is normalized to lowercase.
    - Doctors start unverified and are not listed until an admin verifies them.
    """
    try:
        user = await register_user(session, payload)
    except EmailAlreadyExists:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="email_already_exists",
        )
    return to_account(user)


@router.post(
    "/auth/login",
    response_model=LoginResponse,
    summary="Obtain a Bearer token with email and password (JSON body)",
    responses={401: {"description": "Invalid credentials"}},
)
async def auth_login(
    payload: LoginRequest,
    session: AsyncSession = Depends(get_session),
):
    try:
        return await login_user(session, payload)
    except InvalidCredentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="invalid_credentials",
        )


@router.post(
    "/auth/token",
    response_model=LoginResponse,
    summary="OAuth2 password flow login (for Swagger UI)",
    responses={401: {"description": "Invalid credentials"}},
)
async def auth_token(
    form_data: OAuth2PasswordRequestForm = Depends(),
    session: AsyncSession = Depends(get_session),
):
    """
    Swagger sends form data: username = email, password = password.
    """
    login_payload = LoginRequest(email=form_data.username, password=form_data.password)
    try:
        return await login_user(session, login_payload)
    except InvalidCredentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="invalid_credentials",
        )


@router.get(
    "/auth/me",
    response_model=Account,
    summary="Return the current user's profile",
)
async def auth_me(current_user: User = Depends(get_current_user)):
    return to_account(current_user)
