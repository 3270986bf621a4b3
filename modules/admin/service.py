"""
Admin Module - User Management Service
========================================
List, inspect and update accounts; create STAFF / ADMIN accounts.
"""

import logging
from typing import List, Optional, Tuple

from sqlalchemy import or_, desc
from sqlalchemy.orm import Session

from common.exceptions import ConflictError, ForbiddenError, NotFoundError
from common.helpers import parse_paging, to_e164_vn
from common.security import hash_password
from modules.auth.service import auth_service
from modules.user.models import User, UserRole

logger = logging.getLogger("ahso.admin")


def user_admin_dict(user: User) -> dict:
    return {
        "id": user.id,
        "username": user.username,
        "full_name": user.full_name,
        "email": user.email,
        "phone_e164": user.phone_e164,
        "role": user.role,
        "is_blocked": user.is_blocked,
        "created_at": user.created_at.isoformat() if user.created_at else None,
    }


class UserAdminService:

    def list_users(
        self, db: Session, q: str = "", role: Optional[str] = None, page: int = 1, page_size: int = 20,
    ) -> Tuple[List[User], int, int, int]:
        page, page_size, offset = parse_paging(page, page_size)
        query = db.query(User)
        if role:
            query = query.filter(User.role == role)
        if q:
            like = f"%{q.strip()}%"
            query = query.filter(or_(
                User.username.ilike(like),
                User.full_name.ilike(like),
                User.email.ilike(like),
                User.phone_e164.ilike(like),
            ))
        total = query.count()
        rows = query.order_by(desc(User.created_at), desc(User.id)).offset(offset).limit(page_size).all()
        return rows, total, page, page_size

    def get(self, db: Session, user_id: int) -> User:
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            raise NotFoundError("User not found.")
        return user

    def update_user(self, db: Session, actor: User, user_id: int, data: dict) -> User:
        """
        Apply an admin edit. An admin may not change their own role or block themself.

        Raises:
            NotFoundError, ForbiddenError, ConflictError
        """
        user = self.get(db, user_id)

        if user.id == actor.id:
            if data.get("role") is not None and data["role"] != user.role:
                raise ForbiddenError("You cannot change your own role.", code="SELF_DEMOTE")
            if data.get("is_blocked"):
                raise ForbiddenError("You cannot block your own account.", code="SELF_BLOCK")

        if data.get("email"):
            email = data["email"].strip().lower()
            if db.query(User.id).filter(User.email == email, User.id != user.id).first():
                raise ConflictError("Email already exists.")
            user.email = email
        if data.get("phone"):
            phone = to_e164_vn(data["phone"])
            if db.query(User.id).filter(User.phone_e164 == phone, User.id != user.id).first():
                raise ConflictError("Phone already exists.")
            user.phone_e164 = phone
        if data.get("full_name"):
            user.full_name = data["full_name"].strip()
        if data.get("password"):
            user.password_hash = hash_password(data["password"])
        if data.get("role") is not None:
            user.role = data["role"]
        if data.get("is_blocked") is not None:
            user.is_blocked = bool(data["is_blocked"])

        db.flush()
        logger.info(f"User {user.username} updated by {actor.username}: {sorted(k for k, v in data.items() if v is not None and k != 'password')}")
        return user

    # ==========================================
    # Staff accounts
    # ==========================================

    def create_staff(self, db: Session, actor: User, data: dict, role: UserRole) -> User:
        user = auth_service.register(db, data, role=role)
        logger.info(f"{role.value} account {user.username} created by {actor.username}")
        return user

    def get_staff(self, db: Session, user_id: int) -> User:
        """Only STAFF accounts are reachable here; customers and admins are 404."""
        user = db.query(User).filter(User.id == user_id, User.role == UserRole.STAFF.value).first()
        if not user:
            raise NotFoundError("Staff account not found.")
        return user

    def update_staff(self, db: Session, actor: User, user_id: int, data: dict) -> User:
        """Contact details and password only; role and block go through update_user."""
        staff = self.get_staff(db, user_id)
        allowed = {k: v for k, v in data.items() if k in ("full_name", "email", "phone", "password")}
        return self.update_user(db, actor, staff.id, allowed)

    def delete_staff(self, db: Session, actor: User, user_id: int) -> None:
        staff = self.get_staff(db, user_id)
        db.delete(staff)
        db.flush()
        logger.info(f"Staff account {staff.username} deleted by {actor.username}")


# Singleton
user_admin_service = UserAdminService()
