from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from blogapi.database import get_db
from blogapi.dependencies import get_current_user, get_token_service
from blogapi.models import User
from blogapi.responses import success_response
from blogapi.schemas import UserLogin, UserRegister
from blogapi.security import TokenService
from blogapi.services import user_service

router = APIRouter(prefix="/api/auth", tags=["auth"])

@router.post("/register", status_code=201)
async def register(
    data: UserRegister,
    db: AsyncSession = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
):
    user = await user_service.register_user(db, data)
    return success_response(
        message="User registered successfully",
        token=tokens.issue(user.id),
        user=user_service.user_to_dict(user),
    )

@router.post("/login")
async def login(
    data: UserLogin,
    db: AsyncSession = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
):
    user = await user_service.authenticate_user(db, data.email, data.password)
    return success_response(
        message="Login successful",
        token=tokens.issue(user.id),
        user=user_service.user_to_dict(user),
    )

@router.get("/me")
async def me(current_user: User = Depends(get_current_user)):
    return success_response(data=user_service.user_to_dict(current_user))
