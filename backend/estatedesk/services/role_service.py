"""
Role Service - roles with the protected Super Admin (id 1)
"""
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from estatedesk.core.exceptions import (
    BusinessRuleError, NotFoundError, PermissionDeniedError, ValidationFailedError
)
from estatedesk.models import Role, SUPER_ADMIN_ROLE_ID
from estatedesk.schemas import RoleCreate, RoleUpdate
from estatedesk.services.audit_service import AuditAction, AuditService
from estatedesk.services.base import SoftDeleteRepository


class RoleService(SoftDeleteRepository[Role]):
    model = Role
    label = "Role"

    def __init__(self, db: Session):
        super().__init__(db)
        self.audit = AuditService(db)

    def query(self, include_deleted: bool = False):
        # Super Admin never shows up in listings
        return super().query(include_deleted).filter(Role.id != SUPER_ADMIN_ROLE_ID)

    def _check_unique(self, role_name: str, exclude_id: Optional[int] = None):
        query = self.db.query(Role).filter(
            func.lower(Role.role_name) == role_name.strip().lower(),
            Role.is_deleted == False
        )
        if exclude_id:
            query = query.filter(Role.id != exclude_id)
        if query.first():
            raise ValidationFailedError("The role name has already been taken.")

    def list(self) -> List[Role]:
        return self.query().order_by(Role.id.desc()).all()

    def create(self, data: RoleCreate, user_id: Optional[int] = None) -> Role:
        self._check_unique(data.role_name)
        role = Role(role_name=data.role_name.strip(), status=data.status, user_id=user_id)
        self.db.add(role)
        self.db.flush()
        self.audit.log(action=AuditAction.CREATE, resource_type="Role", resource_id=role.id,
                       new_values={"role_name": role.role_name}, user_id=user_id)
        return role

    def update(self, role_id: int, data: RoleUpdate, user_id: Optional[int] = None) -> Role:
        if role_id == SUPER_ADMIN_ROLE_ID:
            raise PermissionDeniedError("Super Admin role cannot be modified.")
        role = self.get_or_404(role_id, include_deleted=True)
        if role.is_deleted:
            raise BusinessRuleError("Cannot update a deleted role.")

        update_data = data.model_dump(exclude_unset=True)
        if update_data.get("role_name"):
            self._check_unique(update_data["role_name"], exclude_id=role.id)
            role.role_name = update_data["role_name"].strip()
        if update_data.get("status") is not None:
            role.status = update_data["status"]

        self.db.flush()
        self.audit.log(action=AuditAction.UPDATE, resource_type="Role", resource_id=role.id,
                       new_values=update_data, user_id=user_id)
        return role

    def destroy(self, role_id: int, user_id: Optional[int] = None) -> Role:
        if role_id == SUPER_ADMIN_ROLE_ID:
            raise PermissionDeniedError("Super Admin role cannot be deleted.")
        role = self.get_by_id(role_id, include_deleted=True)
        if not role:
            raise NotFoundError("Role not found")
        if role.is_deleted:
            raise BusinessRuleError("Role is already deleted.")
        role.soft_delete()
        role.status = False
        self.db.flush()
        self.audit.log(action=AuditAction.DELETE, resource_type="Role", resource_id=role.id, user_id=user_id)
        return role

    def restore(self, role_id: int, user_id: Optional[int] = None) -> Role:
        if role_id == SUPER_ADMIN_ROLE_ID:
            raise BusinessRuleError("Super Admin role cannot be restored.")
        role = self.get_or_404(role_id, include_deleted=True)
        if not role.is_deleted:
            raise BusinessRuleError("Role is already active.")
        self._check_unique(role.role_name, exclude_id=role.id)
        role.restore()
        role.status = True
        self.db.flush()
        self.audit.log(action=AuditAction.RESTORE, resource_type="Role", resource_id=role.id, user_id=user_id)
        return role

