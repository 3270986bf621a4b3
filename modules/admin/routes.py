"""
Admin Module - User Routes
============================
Account management for ADMIN.

Endpoints:
  GET   /api/admin/users        - Search / filter users
  POST  /api/admin/users/staff  - Create a STAFF or ADMIN account
  GET   /api/admin/users/{id}   - User detail
  PATCH /api/admin/users/{id}   - Update profile, role, block flag

  GET / PATCH / DELETE /api/admin/users/staff/{id} - STAFF account detail, edit, removal
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from config.database import get_db
from modules.admin.service import user_admin_service, user_admin_dict
from modules.auth.deps import require_admin
from modules.auth.routes import RegisterRequest
from modules.user.models import User, UserRole

router = APIRouter(prefix="/api/admin/users", tags=["admin-users"])


# ==========================================
# Schemas
# ==========================================

class UserUpdateRequest(BaseModel):
    full_name: Optional[str] = Field(None, min_length=1, max_length=128)
    email: Optional[str] = Field(None, pattern=r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
    phone: Optional[str] = Field(None, min_length=9, max_length=20)
    password: Optional[str] = Field(None, min_length=8)
    # ADMIN is only granted through /staff
    role: Optional[str] = Field(None, pattern="^(USER|STAFF)$")
    is_blocked: Optional[bool] = None


class StaffCreateRequest(RegisterRequest):
    role: str = Field("STAFF", pattern="^(STAFF|ADMIN)$")


class StaffUpdateRequest(BaseModel):
    full_name: Optional[str] = Field(None, min_length=1, max_length=128)
    email: Optional[str] = Field(None, pattern=r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
    phone: Optional[str] = Field(None, min_length=9, max_length=20)
    password: Optional[str] = Field(None, min_length=8)


# ==========================================
# Routes
# ==========================================

@router.get("")
async def list_users(
    q: str = "",
    role: Optional[str] = Query(None, pattern="^(USER|STAFF|ADMIN)$"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    users, total, page, page_size = user_admin_service.list_users(db, q=q, role=role, page=page, page_size=page_size)
    return {
        "data": [user_admin_dict(u) for u in users],
        "meta": {"total": total, "page": page, "page_size": page_size},
    }


@router.post("/staff", status_code=201)
async def create_staff(
    body: StaffCreateRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    data = body.model_dump()
    role = UserRole(data.pop("role"))
    user = user_admin_service.create_staff(db, admin, data, role)
    db.commit()
    db.refresh(user)
    return {"user": user_admin_dict(user)}


@router.get("/{user_id}")
async def get_user(
    user_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return {"user": user_admin_dict(user_admin_service.get(db, user_id))}


@router.patch("/{user_id}")
async def update_user(
    user_id: int,
    body: UserUpdateRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    user = user_admin_service.update_user(db, admin, user_id, body.model_dump(exclude_unset=True))
    db.commit()
    db.refresh(user)
    return {"user": user_admin_dict(user)}


# ==========================================
# Staff accounts
# ==========================================

@router.get("/staff/{staff_id}")
async def get_staff(
    staff_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return {"data": user_admin_dict(user_admin_service.get_staff(db, staff_id))}


@router.patch("/staff/{staff_id}")
async def update_staff(
    staff_id: int,
    body: StaffUpdateRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    staff = user_admin_service.update_staff(db, admin, staff_id, body.model_dump(exclude_unset=True))
    db.commit()
    db.refresh(staff)
    return {"data": user_admin_dict(staff)}


@router.delete("/staff/{staff_id}")
async def delete_staff(
    staff_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    user_admin_service.delete_staff(db, admin, staff_id)
    db.commit()
    return {"ok": True}
