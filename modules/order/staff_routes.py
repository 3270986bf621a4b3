"""
Order Module - Staff Routes
=============================
Order back-office for STAFF and ADMIN.

Endpoints:
  GET   /api/staff/orders       - Search / filter / page + per-status stats
  GET   /api/staff/orders/{id}  - Order detail
  PATCH /api/staff/orders/{id}  - Update status, note, shipping method
"""

import math
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field, model_validator
from sqlalchemy.orm import Session

from config.database import get_db
from common.helpers import parse_date
from modules.auth.deps import require_staff
from modules.order.models import OrderStatus
from modules.order.service import order_service, order_summary, order_to_dict
from modules.user.models import User

router = APIRouter(prefix="/api/staff/orders", tags=["staff-orders"])


# ==========================================
# Schemas
# ==========================================

class OrderUpdateRequest(BaseModel):
    status: Optional[OrderStatus] = None
    note: Optional[str] = Field(None, max_length=1000)
    shipping_method: Optional[str] = Field(None, max_length=120)

    @model_validator(mode="after")
    def _at_least_one(self):
        sent = self.model_fields_set
        if not (self.status or "note" in sent or "shipping_method" in sent):
            raise ValueError("No changes submitted")
        return self


# ==========================================
# GET /api/staff/orders
# ==========================================

@router.get("")
async def staff_list_orders(
    q: str = "",
    status: Optional[str] = None,
    date_from: Optional[str] = Query(None, alias="from"),
    date_to: Optional[str] = Query(None, alias="to"),
    page: int = Query(1, ge=1),
    page_size: int = Query(15, ge=1),
    user: User = Depends(require_staff),
    db: Session = Depends(get_db),
):
    # Unknown status values are ignored
    valid_status = status if status in {s.value for s in OrderStatus} else None
    start = parse_date(date_from)
    end = parse_date(date_to)

    orders, total, stats, page, page_size = order_service.staff_list(
        db, q=q.strip(), status=valid_status, date_from=start, date_to=end,
        page=page, page_size=page_size,
    )
    return {
        "data": [order_summary(o) for o in orders],
        "meta": {
            "page": page,
            "page_size": page_size,
            "total": total,
            "total_pages": math.ceil(total / page_size) if total else 0,
        },
        "stats": stats,
        "filters": {
            "q": q.strip(),
            "status": valid_status,
            "from": start.isoformat() if start else None,
            "to": end.isoformat() if end else None,
        },
    }


# ==========================================
# GET /api/staff/orders/{id}
# ==========================================

@router.get("/{order_id}")
async def staff_order_detail(
    order_id: int,
    user: User = Depends(require_staff),
    db: Session = Depends(get_db),
):
    return order_to_dict(order_service.get(db, order_id))


# ==========================================
# PATCH /api/staff/orders/{id}
# ==========================================

@router.patch("/{order_id}")
async def staff_update_order(
    order_id: int,
    body: OrderUpdateRequest,
    user: User = Depends(require_staff),
    db: Session = Depends(get_db),
):
    order = order_service.staff_update(
        db, order_id, user,
        status=body.status.value if body.status else None,
        note=body.note.strip() if body.note else body.note,
        shipping_method=body.shipping_method.strip() if body.shipping_method else body.shipping_method,
        fields=set(body.model_fields_set),
    )
    db.commit()
    db.refresh(order)
    return {
        "data": {
            "id": order.id,
            "code": order.code,
            "status": order.status,
            "note": order.note,
            "shipping_method": order.shipping_method,
            "updated_at": order.updated_at.isoformat() if order.updated_at else None,
        },
    }
