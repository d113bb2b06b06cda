"""
Auth API endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, status

from . import schemas, service

router = APIRouter(prefix="/api/auth")


@router.post(
    "/register",
    response_model=schemas.AuthResponse,
    status_code=status.HTTP_201_CREATED,
)
async def register(request: schemas.RegisterRequest) -> schemas.AuthResponse:
    return await service.register(request)


@router.post("/login", response_model=schemas.AuthResponse)
async def login(request: schemas.LoginRequest) -> schemas.AuthResponse:
    return await service.login(request)


@router.post("/admin-login", response_model=schemas.AdminLoginResponse)
async def admin_login(request: schemas.AdminLoginRequest) -> schemas.AdminLoginResponse:
    return await service.admin_login(request)


@router.post("/verify-admin", response_model=schemas.VerifyAdminResponse)
async def verify_admin(request: schemas.VerifyAdminRequest) -> schemas.VerifyAdminResponse:
    return await service.verify_admin(request)
