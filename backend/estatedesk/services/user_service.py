"""
User Service - accounts, credentials and the protected super admin
"""
from datetime import datetime
from typing import Optional, Tuple
import logging

from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

from estatedesk.core.config import settings
from estatedesk.core.exceptions import (
    BusinessRuleError, NotFoundError, PermissionDeniedError, ValidationFailedError
)
from estatedesk.core.pagination import Page, paginate
from estatedesk.core.security import get_password_hash, verify_password
from estatedesk.models import Role, User, SUPER_ADMIN_ROLE_ID, SUPER_ADMIN_USER_ID
from estatedesk.schemas import ChangePasswordRequest, UserRegister, UserUpdate
from estatedesk.services.audit_service import AuditAction, AuditService
from estatedesk.services.base import SoftDeleteRepository

logger = logging.getLogger(__name__)


def _is_protected(user: User) -> bool:
    return user.id == SUPER_ADMIN_USER_ID or user.role_id == SUPER_ADMIN_ROLE_ID


class UserService(SoftDeleteRepository[User]):
    model = User
    label = "User"

    def __init__(self, db: Session):
        super().__init__(db)
        self.audit = AuditService(db)

    def query(self, include_deleted: bool = False):
        # Super admin accounts are never listed or managed through these endpoints
        return super().query(include_deleted).filter(
            User.id != SUPER_ADMIN_USER_ID,
            User.role_id != SUPER_ADMIN_ROLE_ID
        )

    def get_active_by_email(self, email: str) -> Optional[User]:
        return self.db.query(User).options(joinedload(User.role)).filter(
            User.email == email.lower(),
            User.is_deleted == False
        ).first()

    def _check_email(self, email: str, exclude_id: Optional[int] = None):
        query = self.db.query(User).filter(User.email == email.lower(), User.is_deleted == False)
        if exclude_id:
            query = query.filter(User.id != exclude_id)
        if query.first():
            raise ValidationFailedError("The email has already been taken.")

    def _check_role(self, role_id: int):
        if role_id == SUPER_ADMIN_ROLE_ID:
            raise PermissionDeniedError("Super Admin role cannot be assigned.")
        role = self.db.query(Role).filter(Role.id == role_id, Role.is_deleted == False).first()
        if not role:
            raise NotFoundError("Role not found")
        if not role.status:
            raise BusinessRuleError("Role is inactive.")

    def authenticate(self, email: str, password: str) -> Optional[User]:
        user = self.get_active_by_email(email)
        if not user or not verify_password(password, user.hashed_password):
            self.audit.log(action=AuditAction.LOGIN_FAILED, resource_type="User",
                           username=email.lower(), status="failure")
            return None
        return user

    def record_login(self, user: User):
        user.last_login = datetime.utcnow()
        self.audit.log(action=AuditAction.LOGIN, resource_type="User", resource_id=user.id,
                       user_id=user.id, username=user.email)

    def list(
        self,
        search: Optional[str] = None,
        status: Optional[bool] = None,
        role_id: Optional[int] = None,
        page: int = 1,
        per_page: int = 20
    ) -> Page:
        query = self.query().options(joinedload(User.role))
        if search:
            like = f"%{search.strip()}%"
            query = query.filter(or_(User.name.ilike(like), User.email.ilike(like)))
        if status is not None:
            query = query.filter(User.status == status)
        if role_id:
            query = query.filter(User.role_id == role_id)
        return paginate(query.order_by(User.id.desc()), page, per_page)

    def register(self, data: UserRegister, actor_id: Optional[int] = None) -> Tuple[User, Optional[str]]:
        """Create an account; returns the generated password when none was supplied"""
        self._check_role(data.role_id)
        self._check_email(data.email)

        generated = None
        password = data.password
        if not password:
            password = generated = settings.DEFAULT_USER_PASSWORD

        user = User(
            name=data.name,
            email=data.email.lower(),
            hashed_password=get_password_hash(password),
            role_id=data.role_id,
            status=data.status
        )
        self.db.add(user)
        self.db.flush()
        self.audit.log(action=AuditAction.USER_CREATED, resource_type="User", resource_id=user.id,
                       new_values={"email": user.email, "role_id": user.role_id}, user_id=actor_id)
        return user, generated

    def update(self, user_id: int, data: UserUpdate, actor_id: Optional[int] = None) -> User:
        target = self.db.query(User).filter(User.id == user_id).first()
        if not target:
            raise NotFoundError("User not found")
        if _is_protected(target):
            raise PermissionDeniedError("Super Admin account cannot be modified.")
        if target.is_deleted:
            raise BusinessRuleError("Cannot update a deleted user.")

        update_data = data.model_dump(exclude_unset=True)
        if update_data.get("role_id") is not None:
            self._check_role(update_data["role_id"])
            target.role_id = update_data["role_id"]
        if update_data.get("email"):
            self._check_email(update_data["email"], exclude_id=target.id)
            target.email = update_data["email"].lower()
        if update_data.get("name"):
            target.name = update_data["name"]
        if update_data.get("status") is not None:
            target.status = update_data["status"]

        self.db.flush()
        self.audit.log(action=AuditAction.USER_UPDATED, resource_type="User", resource_id=target.id,
                       new_values=update_data, user_id=actor_id)
        return target

    def change_password(self, actor: User, data: ChangePasswordRequest) -> User:
        if data.user_id and data.user_id != actor.id:
            if not actor.is_super_admin:
                raise PermissionDeniedError("Only the Super Admin can change another user's password.")
            if data.user_id == SUPER_ADMIN_USER_ID:
                raise PermissionDeniedError("Super Admin password cannot be changed here.")
            target = self.get_or_404(data.user_id)
            action = AuditAction.PASSWORD_RESET
        else:
            if not data.old_password or not verify_password(data.old_password, actor.hashed_password):
                raise BusinessRuleError("Old password is incorrect.")
            target = actor
            action = AuditAction.PASSWORD_CHANGE

        target.hashed_password = get_password_hash(data.new_password)
        self.db.flush()
        self.audit.log(action=action, resource_type="User", resource_id=target.id, user_id=actor.id)
        return target

    def destroy(self, user_id: int, actor_id: Optional[int] = None) -> User:
        target = self.db.query(User).filter(User.id == user_id).first()
        if not target:
            raise NotFoundError("User not found")
        if _is_protected(target):
            raise PermissionDeniedError("Super Admin account cannot be deleted.")
        if target.id == actor_id:
            raise BusinessRuleError("You cannot delete your own account.")
        if target.is_deleted:
            raise BusinessRuleError("User is already deleted.")

        target.soft_delete()
        target.status = False
        self.db.flush()
        self.audit.log(action=AuditAction.USER_DELETED, resource_type="User", resource_id=target.id,
                       user_id=actor_id)
        return target

    def restore(self, user_id: int, actor_id: Optional[int] = None) -> User:
        target = self.get_or_404(user_id, include_deleted=True)
        if target.is_deleted:
            self._check_email(target.email, exclude_id=target.id)
        user = super().restore(user_id)
        user.status = True
        self.audit.log(action=AuditAction.RESTORE, resource_type="User", resource_id=user.id, user_id=actor_id)
        return user


def seed_super_admin(db: Session):
    """Create the protected role and account on first start"""
    role = db.query(Role).filter(Role.id == SUPER_ADMIN_ROLE_ID).first()
    if not role:
        role = Role(id=SUPER_ADMIN_ROLE_ID, role_name="Super Admin", status=True)
        db.add(role)
        db.flush()
        logger.info("Seeded Super Admin role")

    admin = db.query(User).filter(User.id == SUPER_ADMIN_USER_ID).first()
    if not admin:
        admin = User(
            id=SUPER_ADMIN_USER_ID,
            name=settings.SUPER_ADMIN_NAME,
            email=settings.SUPER_ADMIN_EMAIL.lower(),
            hashed_password=get_password_hash(settings.SUPER_ADMIN_PASSWORD),
            role_id=SUPER_ADMIN_ROLE_ID,
            status=True
        )
        db.add(admin)
        logger.info(f"Seeded super admin {admin.email}")

    db.commit()
