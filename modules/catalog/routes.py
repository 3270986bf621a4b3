"""
Catalog Module - Public Routes
================================
Read-only JSON endpoints for the storefront.

Endpoints:
  GET /api/brands                  - All brands
  GET /api/categories              - All categories
  GET /api/products                - Filtered, paged product list
  GET /api/products/variants/{sku} - Single variant by SKU
  GET /api/products/{slug}         - Product detail with variants
"""

import math
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from config.database import get_db
from modules.catalog.models import Category
from modules.catalog.service import (
    brand_service, product_service, variant_service,
    product_card, product_detail, variant_to_dict,
)

router = APIRouter(prefix="/api", tags=["catalog"])


@router.get("/brands")
async def list_brands(db: Session = Depends(get_db)):
    brands, total = brand_service.list(db)
    return {"data": [b.to_dict() for b in brands], "meta": {"total": total}}


@router.get("/categories")
async def list_categories(db: Session = Depends(get_db)):
    categories = db.query(Category).order_by(Category.sort_order, Category.name).all()
    return {"data": [c.to_dict() for c in categories], "meta": {"total": len(categories)}}


@router.get("/products")
async def list_products(
    q: str = "",
    brand: Optional[str] = None,
    category: Optional[str] = None,
    min_price: Optional[float] = Query(None, ge=0),
    max_price: Optional[float] = Query(None, ge=0),
    in_stock: bool = False,
    sort: str = "relevance",
    page: int = Query(1, ge=1),
    page_size: int = Query(12, ge=1, le=100),
    db: Session = Depends(get_db),
):
    products, total, page, page_size = product_service.list_products(
        db, q=q, brand=brand, category=category,
        min_price=min_price, max_price=max_price, in_stock=in_stock,
        sort=sort, page=page, page_size=page_size,
    )
    return {
        "data": [product_card(p) for p in products],
        "meta": {
            "page": page,
            "page_size": page_size,
            "total": total,
            "total_pages": math.ceil(total / page_size) if total else 0,
        },
    }


# Registered before /products/{slug} so "variants" is not read as a slug
@router.get("/products/variants/{sku}")
async def get_variant(sku: str, db: Session = Depends(get_db)):
    variant = variant_service.get_public_by_sku(db, sku)
    data = variant_to_dict(variant)
    data["product"] = product_card(variant.product)
    return data


@router.get("/products/{slug}")
async def get_product(slug: str, db: Session = Depends(get_db)):
    product = product_service.get_by_slug(db, slug)
    return product_detail(product)
