import logging
from fastapi import APIRouter, Depends, HTTPException, status, Response
from sqlalchemy.orm import Session

from unitask.auth import verify_password, create_access_token, get_current_active_user
from unitask.config import COOKIE_SECURE
from unitask.database import get_db
from unitask.models import User
from unitask.schemas import UserLogin, UserProfileResponse

router = APIRouter(prefix="/api/auth", tags=["auth"])
logger = logging.getLogger(__name__)

COOKIE_MAX_AGE = 7 * 24 * 60 * 60  # 7 days


def set_auth_cookie(response: Response, access_token: str) -> None:
    response.set_cookie(
        key="access_token",
        value=access_token,
        httponly=True,
        secure=COOKIE_SECURE,
        samesite="lax",
        max_age=COOKIE_MAX_AGE,
    )


@router.post("/login")
def login(response: Response, credentials: UserLogin, db: Session = Depends(get_db)):
    """Authenticate user and return JWT token via cookie."""
    user = db.query(User).filter(User.email == credentials.email).first()

    if not user:
        logger.warning(
            "Login failed: user not found",
            extra={"operation": "login", "error_type": "user_not_found"}
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        logger.warning(
            f"Login failed: account deactivated, user_id={user.id}",
            extra={"operation": "login", "user_id": user.id, "error_type": "account_deactivated"}
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is deactivated. Please contact an administrator.",
        )

    # Never log the password
    if not verify_password(credentials.password, user.hashed_password):
        logger.warning(
            f"Login failed: invalid password, user_id={user.id}",
            extra={"operation": "login", "user_id": user.id, "error_type": "invalid_password"}
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    access_token = create_access_token(data={"sub": user.email})
    set_auth_cookie(response, access_token)

    logger.info(
        f"Login successful: user_id={user.id}, is_admin={user.is_admin}",
        extra={"operation": "login", "user_id": user.id, "tenant_id": user.tenant_id}
    )

    return {
        "access_token": access_token,
        "token_type": "bearer"
    }


@router.post("/logout")
def logout(response: Response):
    """Logout user by clearing the cookie."""
    response.delete_cookie(key="access_token")
    logger.info("Logout successful", extra={"operation": "logout"})
    return {"success": True, "message": "Logged out successfully"}


@router.get("/me", response_model=UserProfileResponse)
def get_me(current_user: User = Depends(get_current_active_user)):
    """Get current user profile."""
    return {
        "id": current_user.id,
        "name": current_user.name,
        "email": current_user.email,
        "tenant_id": current_user.tenant_id,
        "is_admin": current_user.is_admin,
        "is_active": current_user.is_active,
        "created_at": current_user.created_at.isoformat() if current_user.created_at else None
    }
