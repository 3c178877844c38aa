"""
Role API Routes (Super Admin only)
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from estatedesk.core.database import get_db
from estatedesk.core.exceptions import PermissionDeniedError
from estatedesk.core.security import require_super_admin
from estatedesk.api.responses import success
from estatedesk.models import SUPER_ADMIN_ROLE_ID
from estatedesk.schemas import RoleCreate, RoleResponse, RoleUpdate
from estatedesk.services.role_service import RoleService

router = APIRouter(prefix="/roles", tags=["Roles"])


@router.get("")
async def list_roles(db: Session = Depends(get_db), current_user=Depends(require_super_admin)):
    roles = RoleService(db).list()
    return success([RoleResponse.model_validate(r) for r in roles])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_role(
    data: RoleCreate,
    db: Session = Depends(get_db),
    current_user=Depends(require_super_admin)
):
    role = RoleService(db).create(data, user_id=current_user.id)
    db.commit()
    db.refresh(role)
    return success(RoleResponse.model_validate(role), message="Role created successfully")


@router.get("/trash")
async def list_trashed_roles(
    page: int = Query(1, ge=1),
    db: Session = Depends(get_db),
    current_user=Depends(require_super_admin)
):
    result = RoleService(db).trash(page=page)
    return success([RoleResponse.model_validate(r) for r in result.items], page=result)


@router.get("/{role_id}")
async def get_role(role_id: int, db: Session = Depends(get_db), current_user=Depends(require_super_admin)):
    if role_id == SUPER_ADMIN_ROLE_ID:
        raise PermissionDeniedError("Super Admin role cannot be viewed.")
    role = RoleService(db).get_or_404(role_id)
    return success(RoleResponse.model_validate(role))


@router.put("/{role_id}")
async def update_role(
    role_id: int,
    data: RoleUpdate,
    db: Session = Depends(get_db),
    current_user=Depends(require_super_admin)
):
    role = RoleService(db).update(role_id, data, user_id=current_user.id)
    db.commit()
    db.refresh(role)
    return success(RoleResponse.model_validate(role), message="Role updated successfully")


@router.delete("/{role_id}")
async def delete_role(role_id: int, db: Session = Depends(get_db), current_user=Depends(require_super_admin)):
    RoleService(db).destroy(role_id, user_id=current_user.id)
    db.commit()
    return success(message="Role moved to trash")


@router.post("/{role_id}/restore")
async def restore_role(role_id: int, db: Session = Depends(get_db), current_user=Depends(require_super_admin)):
    role = RoleService(db).restore(role_id, user_id=current_user.id)
    db.commit()
    db.refresh(role)
    return success(RoleResponse.model_validate(role), message="Role restored successfully")
