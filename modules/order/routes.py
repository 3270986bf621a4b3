"""
Order Module - Customer Routes
================================
Endpoints:
  GET /api/orders       - Own orders, newest first (paged)
  GET /api/orders/{id}  - Own order with items (staff may read any)
"""

import math

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from config.database import get_db
from modules.auth.deps import require_login
from modules.order.service import order_service, order_summary, order_to_dict
from modules.user.models import User

router = APIRouter(prefix="/api/orders", tags=["orders"])


@router.get("")
async def my_orders(
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=50),
    user: User = Depends(require_login),
    db: Session = Depends(get_db),
):
    orders, total, page, page_size = order_service.list_user_orders(db, user.id, page=page, page_size=page_size)
    return {
        "data": [order_summary(o) for o in orders],
        "meta": {
            "page": page,
            "page_size": page_size,
            "total": total,
            "total_pages": math.ceil(total / page_size) if total else 0,
        },
    }


@router.get("/{order_id}")
async def order_detail(
    order_id: int,
    user: User = Depends(require_login),
    db: Session = Depends(get_db),
):
    order = order_service.get_for_user(db, order_id, user)
    return order_to_dict(order)
