"""
Catalog Module - Admin Routes
===============================
CRUD for Brands, Categories, Products and Variants.
All routes require ADMIN.

Endpoints:
  GET/POST          /api/admin/brands
  PATCH/DELETE      /api/admin/brands/{id}
  GET/POST          /api/admin/categories
  PATCH/DELETE      /api/admin/categories/{id}
  GET/POST          /api/admin/products
  GET/PATCH/DELETE  /api/admin/products/{id}
  POST              /api/admin/products/{id}/variants
  PATCH/DELETE      /api/admin/variants/{id}
"""

import logging
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from config.database import get_db
from modules.auth.deps import require_admin
from modules.catalog.models import PublishStatus
from modules.catalog.service import (
    brand_service, category_service, product_service, variant_service,
    product_card, product_detail, variant_to_dict,
)

logger = logging.getLogger("ahso.catalog")

router = APIRouter(prefix="/api/admin", tags=["catalog-admin"])


# ==========================================
# Schemas
# ==========================================

class BrandIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    slug: Optional[str] = None
    logo_url: Optional[str] = None
    summary: Optional[str] = None


class BrandPatch(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=120)
    slug: Optional[str] = None
    logo_url: Optional[str] = None
    summary: Optional[str] = None


class CategoryIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    slug: Optional[str] = None
    description: Optional[str] = None
    cover_image: Optional[str] = None
    sort_order: int = 0


class CategoryPatch(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=120)
    slug: Optional[str] = None
    description: Optional[str] = None
    cover_image: Optional[str] = None
    sort_order: Optional[int] = None


class VariantIn(BaseModel):
    sku: str = Field(..., min_length=1, max_length=64)
    name: Optional[str] = None
    price: Decimal = Field(..., ge=0)
    list_price: Optional[Decimal] = Field(None, ge=0)
    currency: str = Field("VND", min_length=3, max_length=3)
    tax_included: bool = False
    stock_on_hand: int = Field(0, ge=0)
    is_active: bool = True


class VariantPatch(BaseModel):
    sku: Optional[str] = Field(None, min_length=1, max_length=64)
    name: Optional[str] = None
    price: Optional[Decimal] = Field(None, ge=0)
    list_price: Optional[Decimal] = Field(None, ge=0)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    tax_included: Optional[bool] = None
    stock_on_hand: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None


class ProductIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    slug: Optional[str] = None
    summary: Optional[str] = None
    description: Optional[str] = None
    cover_image: Optional[str] = None
    status: PublishStatus = PublishStatus.DRAFT
    brand_id: Optional[int] = None
    category_id: Optional[int] = None
    variants: List[VariantIn] = []


class ProductPatch(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    slug: Optional[str] = None
    summary: Optional[str] = None
    description: Optional[str] = None
    cover_image: Optional[str] = None
    status: Optional[PublishStatus] = None
    brand_id: Optional[int] = None
    category_id: Optional[int] = None


def _product_payload(body: BaseModel, partial: bool) -> dict:
    data = body.model_dump(exclude_unset=partial)
    if data.get("status") is not None:
        data["status"] = data["status"].value
    return data


# ==========================================
# 🏷️ Brands
# ==========================================

@router.get("/brands")
async def admin_list_brands(
    q: str = "",
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    user=Depends(require_admin),
):
    brands, total = brand_service.list(db, q=q, page=page, page_size=page_size)
    return {"data": [b.to_dict() for b in brands], "meta": {"page": page, "page_size": page_size, "total": total}}


@router.post("/brands", status_code=201)
async def admin_create_brand(body: BrandIn, db: Session = Depends(get_db), user=Depends(require_admin)):
    brand = brand_service.create(db, body.model_dump())
    db.commit()
    logger.info(f"Brand {brand.slug} created by {user.username}")
    return brand.to_dict()


@router.patch("/brands/{brand_id}")
async def admin_update_brand(
    brand_id: int, body: BrandPatch, db: Session = Depends(get_db), user=Depends(require_admin),
):
    brand = brand_service.update(db, brand_id, body.model_dump(exclude_unset=True))
    db.commit()
    return brand.to_dict()


@router.delete("/brands/{brand_id}")
async def admin_delete_brand(brand_id: int, db: Session = Depends(get_db), user=Depends(require_admin)):
    brand_service.delete(db, brand_id)
    db.commit()
    logger.info(f"Brand #{brand_id} deleted by {user.username}")
    return {"ok": True}


# ==========================================
# 🗂️ Categories
# ==========================================

@router.get("/categories")
async def admin_list_categories(
    q: str = "",
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    user=Depends(require_admin),
):
    categories, total = category_service.list(db, q=q, page=page, page_size=page_size)
    return {"data": [c.to_dict() for c in categories], "meta": {"page": page, "page_size": page_size, "total": total}}


@router.post("/categories", status_code=201)
async def admin_create_category(body: CategoryIn, db: Session = Depends(get_db), user=Depends(require_admin)):
    category = category_service.create(db, body.model_dump())
    db.commit()
    logger.info(f"Category {category.slug} created by {user.username}")
    return category.to_dict()


@router.patch("/categories/{category_id}")
async def admin_update_category(
    category_id: int, body: CategoryPatch, db: Session = Depends(get_db), user=Depends(require_admin),
):
    category = category_service.update(db, category_id, body.model_dump(exclude_unset=True))
    db.commit()
    return category.to_dict()


@router.delete("/categories/{category_id}")
async def admin_delete_category(category_id: int, db: Session = Depends(get_db), user=Depends(require_admin)):
    category_service.delete(db, category_id)
    db.commit()
    logger.info(f"Category #{category_id} deleted by {user.username}")
    return {"ok": True}


# ==========================================
# 📦 Products
# ==========================================

@router.get("/products")
async def admin_list_products(
    q: str = "",
    status: Optional[PublishStatus] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    user=Depends(require_admin),
):
    products, total, page, page_size = product_service.list_products(
        db, q=q, status=status.value if status else None,
        sort="newest", page=page, page_size=page_size,
    )
    rows = []
    for p in products:
        card = product_card(p)
        card["status"] = p.status
        rows.append(card)
    return {"data": rows, "meta": {"page": page, "page_size": page_size, "total": total}}


@router.post("/products", status_code=201)
async def admin_create_product(body: ProductIn, db: Session = Depends(get_db), user=Depends(require_admin)):
    product = product_service.create(db, _product_payload(body, partial=False))
    db.commit()
    db.refresh(product)
    logger.info(f"Product {product.slug} created by {user.username}")
    return product_detail(product)


@router.get("/products/{product_id}")
async def admin_get_product(product_id: int, db: Session = Depends(get_db), user=Depends(require_admin)):
    product = product_service.get_by_id(db, product_id)
    data = product_detail(product)
    data["variants"] = [variant_to_dict(v) for v in product.variants]
    return data


@router.patch("/products/{product_id}")
async def admin_update_product(
    product_id: int, body: ProductPatch, db: Session = Depends(get_db), user=Depends(require_admin),
):
    product = product_service.update(db, product_id, _product_payload(body, partial=True))
    db.commit()
    db.refresh(product)
    return product_detail(product)


@router.delete("/products/{product_id}")
async def admin_delete_product(product_id: int, db: Session = Depends(get_db), user=Depends(require_admin)):
    product_service.delete(db, product_id)
    db.commit()
    logger.info(f"Product #{product_id} deleted by {user.username}")
    return {"ok": True}


# ==========================================
# 🔢 Variants
# ==========================================

@router.post("/products/{product_id}/variants", status_code=201)
async def admin_create_variant(
    product_id: int, body: VariantIn, db: Session = Depends(get_db), user=Depends(require_admin),
):
    product_service.get_by_id(db, product_id)
    variant = variant_service.create(db, product_id, body.model_dump())
    db.commit()
    db.refresh(variant)
    return variant_to_dict(variant)


@router.patch("/variants/{variant_id}")
async def admin_update_variant(
    variant_id: int, body: VariantPatch, db: Session = Depends(get_db), user=Depends(require_admin),
):
    variant = variant_service.update(db, variant_id, body.model_dump(exclude_unset=True))
    db.commit()
    db.refresh(variant)
    return variant_to_dict(variant)


@router.delete("/variants/{variant_id}")
async def admin_delete_variant(variant_id: int, db: Session = Depends(get_db), user=Depends(require_admin)):
    variant_service.delete(db, variant_id)
    db.commit()
    return {"ok": True}
