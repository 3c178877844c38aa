"""
User Management API Routes (Super Admin only)
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from estatedesk.core.database import get_db
from estatedesk.core.security import require_super_admin
from estatedesk.api.responses import success
from estatedesk.schemas import UserResponse, UserUpdate
from estatedesk.services.user_service import UserService

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("")
async def list_users(
    search: Optional[str] = None,
    status: Optional[bool] = None,
    role_id: Optional[int] = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user=Depends(require_super_admin)
):
    result = UserService(db).list(search=search, status=status, role_id=role_id, page=page, per_page=per_page)
    return success([UserResponse.model_validate(u) for u in result.items], page=result)


@router.get("/trash")
async def list_trashed_users(
    page: int = Query(1, ge=1),
    db: Session = Depends(get_db),
    current_user=Depends(require_super_admin)
):
    result = UserService(db).trash(page=page)
    return success([UserResponse.model_validate(u) for u in result.items], page=result)


@router.get("/{user_id}")
async def get_user(
    user_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(require_super_admin)
):
    user = UserService(db).get_or_404(user_id)
    return success(UserResponse.model_validate(user))


@router.put("/{user_id}")
async def update_user(
    user_id: int,
    data: UserUpdate,
    db: Session = Depends(get_db),
    current_user=Depends(require_super_admin)
):
    user = UserService(db).update(user_id, data, actor_id=current_user.id)
    db.commit()
    db.refresh(user)
    return success(UserResponse.model_validate(user), message="User updated successfully")


@router.delete("/{user_id}")
async def delete_user(
    user_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(require_super_admin)
):
    UserService(db).destroy(user_id, actor_id=current_user.id)
    db.commit()
    return success(message="User moved to trash")


@router.post("/{user_id}/restore")
async def restore_user(
    user_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(require_super_admin)
):
    user = UserService(db).restore(user_id, actor_id=current_user.id)
    db.commit()
    db.refresh(user)
    return success(UserResponse.model_validate(user), message="User restored successfully")
