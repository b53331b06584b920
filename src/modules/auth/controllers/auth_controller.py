from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from modules.auth.dependencies import get_current_user
from modules.auth.models.user import User
from modules.auth.schemas.auth_schemas import LoginRequest, TokenResponse, UserResponse
from modules.common.dependencies import get_db, get_services

router = APIRouter(prefix="/auth", tags=["authentication"])


@router.post("/login", response_model=TokenResponse)
def login(login_data: LoginRequest, db: Session = Depends(get_db), services=Depends(get_services)):
    """Staff login"""
    user = services.auth.authenticate_user(db, login_data.email, login_data.password)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    access_token = services.auth.create_access_token(data={"sub": user.email})
    return TokenResponse(
        access_token=access_token,
        token_type="bearer",
        user_id=user.id,
        user_name=user.name,
        user_role=user.role.value,
    )


@router.get("/me", response_model=UserResponse)
def get_current_user_info(current_user: User = Depends(get_current_user)):
    return current_user
