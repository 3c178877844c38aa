"""
Authentication API Routes
"""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from estatedesk.core.database import get_db
from estatedesk.core.security import create_access_token, get_current_user, require_super_admin
from estatedesk.api.responses import success
from estatedesk.schemas import ChangePasswordRequest, LoginRequest, Token, UserRegister, UserResponse
from estatedesk.services.user_service import UserService

router = APIRouter(tags=["Authentication"])


@router.post("/login")
async def login(credentials: LoginRequest, db: Session = Depends(get_db)):
    """Exchange email and password for a bearer token"""
    user_service = UserService(db)
    user = user_service.authenticate(credentials.email, credentials.password)
    if not user:
        # keep the failed-login audit row
        db.commit()
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not user.status:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User account is disabled")

    user_service.record_login(user)
    db.commit()

    token = Token(access_token=create_access_token(data={"sub": user.email}))
    return success(
        {**token.model_dump(), "user": UserResponse.model_validate(user)},
        message="Login successful"
    )


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    data: UserRegister,
    db: Session = Depends(get_db),
    current_user=Depends(require_super_admin)
):
    """Create a user account (Super Admin only)"""
    user, generated_password = UserService(db).register(data, actor_id=current_user.id)
    db.commit()
    db.refresh(user)

    payload = {"user": UserResponse.model_validate(user)}
    if generated_password:
        payload["default_password"] = generated_password
    return success(payload, message="User registered successfully")


@router.post("/change-password")
async def change_password(
    data: ChangePasswordRequest,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user)
):
    UserService(db).change_password(current_user, data)
    db.commit()
    return success(message="Password changed successfully")


@router.get("/profile")
async def profile(current_user=Depends(get_current_user)):
    return success(UserResponse.model_validate(current_user))
