import logging

from fastapi import APIRouter, Depends, HTTPException, status, Response
from sqlalchemy import func
from sqlalchemy.orm import Session

from unitask.auth import get_password_hash, create_access_token
from unitask.database import get_db
from unitask.models import User
from unitask.routers.auth import set_auth_cookie
from unitask.schemas import SetupRequest

router = APIRouter(prefix="/api/admin", tags=["admin"])
logger = logging.getLogger(__name__)


@router.get("/setup-status")
def get_setup_status(db: Session = Depends(get_db)):
    """Check if initial setup has been completed."""
    user_count = db.query(func.count(User.id)).scalar()
    return {
        "setup_complete": user_count > 0,
        "has_users": user_count > 0,
    }


@router.post("/setup")
def setup_application(response: Response, setup_data: SetupRequest, db: Session = Depends(get_db)):
    """Complete initial setup by creating the first admin user."""
    user_count = db.query(func.count(User.id)).scalar()
    if user_count > 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Setup already completed"
        )

    admin_user = User(
        name=setup_data.name,
        email=setup_data.email,
        hashed_password=get_password_hash(setup_data.password),
        tenant_id=setup_data.tenant_id,
        is_admin=True,
        is_active=True,
    )
    db.add(admin_user)
    db.commit()
    db.refresh(admin_user)

    access_token = create_access_token(data={"sub": admin_user.email})
    set_auth_cookie(response, access_token)

    logger.info(
        f"Setup completed: admin user_id={admin_user.id}",
        extra={"operation": "setup", "user_id": admin_user.id, "tenant_id": admin_user.tenant_id}
    )

    return {
        "success": True,
        "message": "Setup completed successfully",
        "access_token": access_token,
        "token_type": "bearer",
        "user": {
            "id": admin_user.id,
            "name": admin_user.name,
            "email": admin_user.email,
            "tenant_id": admin_user.tenant_id,
            "is_admin": admin_user.is_admin
        }
    }
